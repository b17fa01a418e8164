"""宿主能力协商：启动时一次性探测宿主接口并缓存为类型化能力记录。

宿主对象只需实现下列方法中的任意子集（同步或异步均可）：

- ``send_message(role, text)``，或只接受文本的 ``add_system_message(text)`` /
  ``send_system_message(text)``
- ``continue_generation()``，或 ``generate()`` / ``trigger_generate()``
- ``show_notice(title, subtitle, level, timeout_ms)``，可返回一个关闭函数
- ``subscribe_messages(callback)`` / ``on_message(callback)``
- ``subscribe_prompt_ready(callback)`` / ``on_prompt_ready(callback)``

缺失的能力视为配置事实，只记录一次日志；每次调用都返回
``CollaboratorResult``，绝不向调用方抛异常。
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from agentskills.domain.enums import NoticeLevel

logger = logging.getLogger(__name__)

_MESSAGE_WITH_ROLE = ("send_message",)
_MESSAGE_TEXT_ONLY = ("add_system_message", "send_system_message")
_CONTINUE = ("continue_generation", "generate", "trigger_generate")
_NOTICE = ("show_notice",)
_SUBSCRIBE_MESSAGES = ("subscribe_messages", "on_message")
_SUBSCRIBE_PROMPT = ("subscribe_prompt_ready", "on_prompt_ready")


@dataclass(slots=True)
class CollaboratorResult:
    """宿主接口调用结果。"""
    ok: bool
    error: str | None = None
    value: Any = None


async def _call(op: str, fn: Callable[..., Any] | None, *args: Any) -> CollaboratorResult:
    if fn is None:
        return CollaboratorResult(ok=False, error=f"{op} unavailable")
    try:
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return CollaboratorResult(ok=True, value=result)
    except Exception as exc:
        logger.warning(
            "host call failed",
            extra={
                "event": "host.call.failed",
                "external_service": "host",
                "op": op,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return CollaboratorResult(ok=False, error=f"{type(exc).__name__}: {exc}")


class NoticeHandle:
    """瞬时提示句柄，dispose 幂等且不抛异常。"""

    def __init__(self, dispose: Callable[[], Any] | None = None) -> None:
        self._dispose = dispose if callable(dispose) else None
        self._disposed = False

    @property
    def disposable(self) -> bool:
        return self._dispose is not None

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        await _call("notice.dispose", self._dispose)


def _probe(host: Any, names: tuple[str, ...]) -> Callable[..., Any] | None:
    for name in names:
        try:
            candidate = getattr(host, name, None)
        except Exception:
            candidate = None
        if callable(candidate):
            return candidate
    return None


def _drop_role(fn: Callable[[str], Any]) -> Callable[[str, str], Any]:
    def send(_role: str, text: str) -> Any:
        return fn(text)

    return send


class HostCapabilities:
    """已解析的宿主能力记录。"""

    def __init__(
        self,
        *,
        send_message: Callable[[str, str], Any] | None = None,
        continue_generation: Callable[[], Any] | None = None,
        show_notice: Callable[..., Any] | None = None,
        subscribe_messages: Callable[[Callable[[Any], Any]], Any] | None = None,
        subscribe_prompt_ready: Callable[[Callable[[Any], Any]], Any] | None = None,
    ) -> None:
        self._send_message = send_message
        self._continue_generation = continue_generation
        self._show_notice = show_notice
        self._subscribe_messages = subscribe_messages
        self._subscribe_prompt_ready = subscribe_prompt_ready

    @classmethod
    def negotiate(cls, host: Any) -> HostCapabilities:
        """探测宿主对象，缺失的能力只告警一次。"""
        if host is None:
            logger.warning("no host provided; running without collaborators", extra={"event": "host.missing"})
            return cls()

        send_message = _probe(host, _MESSAGE_WITH_ROLE)
        if send_message is None:
            text_only = _probe(host, _MESSAGE_TEXT_ONLY)
            if text_only is not None:
                send_message = _drop_role(text_only)

        capabilities = cls(
            send_message=send_message,
            continue_generation=_probe(host, _CONTINUE),
            show_notice=_probe(host, _NOTICE),
            subscribe_messages=_probe(host, _SUBSCRIBE_MESSAGES),
            subscribe_prompt_ready=_probe(host, _SUBSCRIBE_PROMPT),
        )
        missing = capabilities.missing()
        if missing:
            logger.info(
                "host capabilities missing",
                extra={"event": "host.capability.missing", "payload_preview": {"missing": missing}},
            )
        return capabilities

    def missing(self) -> list[str]:
        pairs = (
            ("send_message", self._send_message),
            ("continue_generation", self._continue_generation),
            ("show_notice", self._show_notice),
            ("subscribe_messages", self._subscribe_messages),
            ("subscribe_prompt_ready", self._subscribe_prompt_ready),
        )
        return [name for name, fn in pairs if fn is None]

    @property
    def can_send_message(self) -> bool:
        return self._send_message is not None

    @property
    def can_continue(self) -> bool:
        return self._continue_generation is not None

    @property
    def can_show_notice(self) -> bool:
        return self._show_notice is not None

    async def send_message(self, role: str, text: str) -> CollaboratorResult:
        return await _call("send_message", self._send_message, role, text)

    async def request_continuation(self) -> CollaboratorResult:
        return await _call("continue_generation", self._continue_generation)

    async def show_notice(
        self,
        title: str,
        subtitle: str = "",
        level: NoticeLevel = NoticeLevel.info,
        timeout_ms: int = 1800,
    ) -> NoticeHandle:
        """展示瞬时提示；timeout_ms 为 0 时由调用方手动 dispose。"""
        if self._show_notice is None:
            return NoticeHandle()
        result = await _call("show_notice", self._show_notice, title, subtitle, level.value, timeout_ms)
        return NoticeHandle(result.value if result.ok else None)

    async def subscribe_messages(self, callback: Callable[[Any], Any]) -> CollaboratorResult:
        return await _call("subscribe_messages", self._subscribe_messages, callback)

    async def subscribe_prompt_ready(self, callback: Callable[[Any], Any]) -> CollaboratorResult:
        return await _call("subscribe_prompt_ready", self._subscribe_prompt_ready, callback)
