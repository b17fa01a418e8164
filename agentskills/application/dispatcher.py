"""结果投递器：把每次调用的终态规整为一条消息写回对话，仅成功时请求续写。"""

from __future__ import annotations

import json
import logging
import traceback
from typing import Any

from agentskills.config import Settings
from agentskills.domain.enums import NoticeLevel, OutcomeStatus
from agentskills.domain.models import CallOutcome, CallRequest
from agentskills.domain.protocol.arguments import safe_text
from agentskills.infra.host.capabilities import HostCapabilities

logger = logging.getLogger(__name__)

EMPTY_RESULT_MARKER = "(empty result)"
UNKNOWN_ERROR_MARKER = "(unknown error)"
MESSAGE_PREFIX = "agentskills"


def normalize_result(result: Any) -> str:
    """将处理函数返回值规整为可投递文本：字符串原样，结构化值序列化，None 为空。"""
    if isinstance(result, str):
        return result
    if result is None:
        return ""
    if isinstance(result, (dict, list, tuple)):
        try:
            return json.dumps(result, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            return safe_text(result)
    return safe_text(result)


def describe_exception(exc: BaseException) -> str:
    """异常分类与消息，附带堆栈。"""
    head = f"{type(exc).__name__}: {exc}"
    try:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    except Exception:
        stack = ""
    return f"{head}\n{stack}".strip()


class ResultDispatcher:
    """结果投递器，宿主投递失败只记录日志，绝不外溢。"""

    def __init__(self, capabilities: HostCapabilities, settings: Settings) -> None:
        self._capabilities = capabilities
        self._role = settings.message_role
        self._window_seconds = settings.breaker_window_seconds()
        self._error_timeout_ms = settings.notice_error_timeout_ms
        self._not_found_timeout_ms = settings.notice_not_found_timeout_ms

    async def breaker_tripped(self, request: CallRequest, *, count: int, max_calls: int) -> CallOutcome:
        await self._notice(
            "Skill loop detected",
            f"Blocked after {max_calls} calls / {self._window_seconds}s",
            self._error_timeout_ms,
        )
        message = (
            f"{MESSAGE_PREFIX}: Circuit breaker triggered. The model called skills too frequently "
            f"({count} calls within {self._window_seconds}s). Further calls are blocked to prevent infinite loops."
        )
        await self._deliver(request, message)
        return CallOutcome(
            call_id=request.call_id,
            skill_name=request.skill_name,
            status=OutcomeStatus.breaker_tripped,
            message=message,
        )

    async def not_found(self, request: CallRequest, *, disabled: bool) -> CallOutcome:
        name = request.skill_name
        await self._notice("Skill not found", f"{name} is disabled" if disabled else name, self._not_found_timeout_ms)
        message = f'Skill call failed: "{name}" is not registered or not enabled.'
        await self._deliver(request, message)
        return CallOutcome(
            call_id=request.call_id,
            skill_name=name,
            status=OutcomeStatus.disabled if disabled else OutcomeStatus.not_found,
            message=message,
        )

    async def succeeded(self, request: CallRequest, result: Any) -> CallOutcome:
        """投递成功结果并请求宿主续写。"""
        payload = normalize_result(result)
        message = "\n".join([f"Skill result: {request.skill_name}", "---", payload or EMPTY_RESULT_MARKER])
        await self._deliver(request, message)
        continuation = await self._capabilities.request_continuation()
        if not continuation.ok:
            logger.info(
                "continuation not issued",
                extra={"event": "call.continuation.skipped", "error": continuation.error},
            )
        return CallOutcome(
            call_id=request.call_id,
            skill_name=request.skill_name,
            status=OutcomeStatus.succeeded,
            message=message,
            payload=payload,
            continued=continuation.ok,
        )

    async def failed(self, request: CallRequest, exc: BaseException) -> CallOutcome:
        """投递失败结果；失败不续写，避免模型静默重试。"""
        await self._notice("Skill failed", request.skill_name, self._error_timeout_ms)
        error_text = describe_exception(exc)
        message = "\n".join(
            [f"Skill execution failed: {request.skill_name}", "---", error_text or UNKNOWN_ERROR_MARKER]
        )
        await self._deliver(request, message)
        return CallOutcome(
            call_id=request.call_id,
            skill_name=request.skill_name,
            status=OutcomeStatus.failed,
            message=message,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )

    async def _deliver(self, request: CallRequest, message: str) -> None:
        try:
            result = await self._capabilities.send_message(self._role, message)
        except Exception as exc:
            logger.error(
                "result delivery crashed",
                extra={"event": "call.delivery.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            return
        if not result.ok:
            logger.warning(
                "result delivery failed",
                extra={
                    "event": "call.delivery.failed",
                    "error": result.error,
                    "payload_preview": {"skill": request.skill_name, "chars": len(message)},
                },
            )

    async def _notice(self, title: str, subtitle: str, timeout_ms: int) -> None:
        try:
            await self._capabilities.show_notice(title, subtitle, NoticeLevel.error, timeout_ms)
        except Exception as exc:
            logger.debug(
                "notice failed",
                extra={"event": "notice.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
