"""日志上下文：基于 contextvars 透传 request/call/skill 标识。"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType

LOG_CONTEXT_FIELDS = ("request_id", "call_id", "skill")

_EMPTY: Mapping[str, str | None] = MappingProxyType({})
_log_context: ContextVar[Mapping[str, str | None]] = ContextVar("agentskills_log_context", default=_EMPTY)


def get_log_context() -> dict[str, str | None]:
    """返回当前协程下的日志上下文字段，未绑定的字段为 None。"""
    current = _log_context.get()
    return {key: current.get(key) for key in LOG_CONTEXT_FIELDS}


@contextmanager
def bind_log_context(**fields: str | None) -> Iterator[None]:
    """在上下文范围内叠加绑定日志字段，退出时恢复外层取值。

    队列 worker 为每个调用绑定 call_id/skill，HTTP 中间件绑定 request_id。
    """
    unknown = sorted(set(fields) - set(LOG_CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"unknown log context fields: {unknown}")
    token = _log_context.set(MappingProxyType({**_log_context.get(), **fields}))
    try:
        yield
    finally:
        _log_context.reset(token)
