"""调用协议引擎：解析模型输出中的调用标签，串行执行技能并回传结果。"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Mapping
from typing import Any

from agentskills.application.dispatcher import ResultDispatcher
from agentskills.application.execution_queue import ExecutionQueue
from agentskills.application.prompt_builder import PromptBuilder
from agentskills.config import Settings
from agentskills.domain.enums import NoticeLevel
from agentskills.domain.models import CallOutcome, CallRequest, SkillContext, SkillDescriptor
from agentskills.domain.protocol.parser import extract_first_call, extract_message_text
from agentskills.domain.skills.registry import SkillRegistry
from agentskills.infra.host.capabilities import HostCapabilities, NoticeHandle
from agentskills.infra.security.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


class CallProtocolEngine:
    """进程内唯一的引擎实例，持有注册中心、熔断器与执行队列。

    所有对外入口（注册、消息处理、提示词注入、技能执行、结果投递）各自隔离，
    任何异常都不会传播到宿主。
    """

    def __init__(
        self,
        *,
        settings: Settings,
        registry: SkillRegistry | None = None,
        breaker: CircuitBreaker | None = None,
        capabilities: HostCapabilities | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry or SkillRegistry()
        self._breaker = breaker or CircuitBreaker(
            window_ms=settings.breaker_window_ms,
            max_calls=settings.breaker_max_calls,
        )
        self._capabilities = capabilities or HostCapabilities()
        self._dispatcher = ResultDispatcher(self._capabilities, settings)
        self._prompt_builder = PromptBuilder(self._registry, depth_note_max_skills=settings.depth_note_max_skills)
        self._queue = ExecutionQueue(self.run_one)

    @property
    def registry(self) -> SkillRegistry:
        return self._registry

    @property
    def capabilities(self) -> HostCapabilities:
        return self._capabilities

    @property
    def prompt_builder(self) -> PromptBuilder:
        return self._prompt_builder

    def register(self, config: Mapping[str, Any] | SkillDescriptor | None) -> str | None:
        """宿主与插件唯一需要的注册入口。"""
        return self._registry.register(config)

    async def attach(self, host: Any) -> HostCapabilities:
        """协商宿主能力，并在宿主支持时订阅消息与请求前钩子。"""
        self._capabilities = HostCapabilities.negotiate(host)
        self._dispatcher = ResultDispatcher(self._capabilities, self._settings)
        subscribed = await self._capabilities.subscribe_messages(self.handle_message)
        if not subscribed.ok:
            logger.warning(
                "message subscription unavailable; only registry and direct calls work",
                extra={"event": "host.subscribe.skipped", "op": "subscribe_messages", "error": subscribed.error},
            )
        hooked = await self._capabilities.subscribe_prompt_ready(self.inject_prompt)
        if not hooked.ok:
            logger.info(
                "prompt hook unavailable",
                extra={"event": "host.subscribe.skipped", "op": "subscribe_prompt_ready", "error": hooked.error},
            )
        return self._capabilities

    def inject_prompt(self, data: Any) -> bool:
        return self._prompt_builder.inject(data)

    def handle_message(self, data: Any) -> asyncio.Future[CallOutcome] | None:
        """处理一条模型输出：识别首个调用标签并入队；没有标签时什么都不做。"""
        request = self.detect(data)
        if request is None:
            return None
        return self.enqueue(request)

    def detect(self, data: Any) -> CallRequest | None:
        """识别消息中的首个调用标签，不入队。"""
        try:
            request = extract_first_call(extract_message_text(data))
        except Exception as exc:
            logger.warning(
                "message handling failed",
                extra={"event": "message.handle.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            return None
        if request is None:
            return None
        logger.info(
            "call tag parsed",
            extra={
                "event": "call.parsed",
                "call_id": request.call_id,
                "skill": request.skill_name,
                "payload_preview": {"args_kind": request.arguments.kind.value, "raw_args": request.raw_args},
            },
        )
        return request

    def enqueue(self, request: CallRequest) -> asyncio.Future[CallOutcome] | None:
        try:
            return self._queue.enqueue(request)
        except RuntimeError as exc:
            # 没有运行中的事件循环时无法调度。
            logger.error(
                "call enqueue failed",
                extra={
                    "event": "call.enqueue.failed",
                    "call_id": request.call_id,
                    "skill": request.skill_name,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return None

    async def join(self) -> None:
        await self._queue.join()

    async def close(self) -> None:
        await self._queue.close()

    async def run_one(self, request: CallRequest) -> CallOutcome:
        """熔断检查 → 查找技能 → 隔离执行 → 投递结果，执行提示在任何出口都会清除。"""
        decision = self._breaker.record_and_check()
        if not decision.allowed:
            return await self._dispatcher.breaker_tripped(
                request, count=decision.count, max_calls=self._breaker.max_calls
            )

        skill = self._registry.get(request.skill_name)
        if skill is None or not skill.enabled:
            logger.warning(
                "skill lookup failed",
                extra={"event": "skill.lookup.failed", "payload_preview": {"disabled": skill is not None}},
            )
            return await self._dispatcher.not_found(request, disabled=skill is not None)

        # 执行提示与技能并行，宿主提示接口变慢不拖住执行通道。
        notice_task = asyncio.create_task(self._show_executing(request.skill_name))
        await asyncio.sleep(0)
        started = time.perf_counter()
        try:
            try:
                result = await self._invoke(skill, request)
            except Exception as exc:
                logger.warning(
                    "skill invocation failed",
                    extra={
                        "event": "skill.invoke.failed",
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                return await self._dispatcher.failed(request, exc)
            logger.info(
                "skill invocation succeeded",
                extra={
                    "event": "skill.invoke.succeeded",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return await self._dispatcher.succeeded(request, result)
        finally:
            notice = await notice_task
            await notice.dispose()

    @staticmethod
    async def _invoke(skill: SkillDescriptor, request: CallRequest) -> Any:
        ctx = SkillContext(name=request.skill_name, arguments=request.arguments, raw_args=request.raw_args)
        result = skill.handler(ctx)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _show_executing(self, skill_name: str) -> NoticeHandle:
        try:
            return await self._capabilities.show_notice(
                self._settings.notice_executing_title, skill_name, NoticeLevel.info, 0
            )
        except Exception as exc:
            logger.debug(
                "executing notice failed",
                extra={"event": "notice.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            return NoticeHandle()
