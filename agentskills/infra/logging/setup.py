"""日志初始化：JSON 行格式、后台队列写盘、敏感信息脱敏与按模块/调用/技能放行 DEBUG。"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Collection, Mapping
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue
from typing import Any

from agentskills.config import Settings
from agentskills.infra.logging.context import LOG_CONTEXT_FIELDS, get_log_context

SERVICE_NAME = "agentskills"
MASK = "***"

_listener: QueueListener | None = None

_INLINE_SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._~+/=-]+"),
    re.compile(r"(?i)((?:x-api-key|api[_-]?key|token|secret|password)\s*[:=]\s*)[^\s,;&\"'}]+"),
)
SENSITIVE_KEYS = frozenset(
    {"authorization", "x-api-key", "api_key", "apikey", "token", "access_token", "password", "secret"}
)
# strict 模式下连调用参数与消息正文一起遮蔽。
STRICT_KEYS = SENSITIVE_KEYS | {"raw_args", "_raw", "content", "text", "args"}

_PASSTHROUGH_FIELDS = ("event", "external_service", "op", "error_type")
_NUMERIC_FIELDS = ("duration_ms", "status_code", "count")


def redact_text(value: Any, mode: str) -> str | None:
    """遮蔽文本中内联出现的凭据（Bearer、key=value 形式）。"""
    if value is None:
        return None
    text = str(value)
    if mode.lower() == "off":
        return text
    for pattern in _INLINE_SECRET_PATTERNS:
        text = pattern.sub(lambda match: f"{match.group(1)}{MASK}", text)
    return text


def redact_payload(payload: Any, mode: str) -> Any:
    """按键名递归遮蔽结构化 payload，键名大小写不敏感。"""
    lowered = mode.lower()
    if lowered == "off":
        return payload
    hidden = STRICT_KEYS if lowered == "strict" else SENSITIVE_KEYS

    def walk(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {key: MASK if str(key).lower() in hidden else walk(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [walk(item) for item in value]
        return value

    return walk(payload)


def render_payload_preview(payload: Any, *, max_chars: int, redaction_mode: str) -> str | None:
    """脱敏并序列化 payload，超长部分截断。"""
    if payload is None:
        return None
    masked = redact_payload(payload, redaction_mode)
    if isinstance(masked, str):
        serialized = masked
    else:
        try:
            serialized = json.dumps(masked, ensure_ascii=False, sort_keys=True, default=str)
        except ValueError:
            serialized = str(masked)
    text = redact_text(serialized, redaction_mode) or ""
    return text if len(text) <= max_chars else f"{text[:max_chars]}...(truncated)"


def _as_number(value: Any) -> int | float | None:
    if value is None or isinstance(value, (int, float)):
        return value
    text = str(value)
    try:
        return float(text) if "." in text else int(text)
    except ValueError:
        return None


class DebugRoutingFilter(logging.Filter):
    """按 min_level 过滤；DEBUG 记录可按模块前缀、call_id 或技能名单独放行。"""

    def __init__(
        self,
        *,
        min_level: int,
        debug_modules: Collection[str] = (),
        debug_call_ids: Collection[str] = (),
        debug_skills: Collection[str] = (),
    ) -> None:
        super().__init__()
        self._min_level = min_level
        self._debug_modules = tuple(debug_modules)
        self._debug_call_ids = frozenset(debug_call_ids)
        self._debug_skills = frozenset(debug_skills)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self._min_level:
            return True
        if record.levelno != logging.DEBUG:
            return False
        if any(record.name == item or record.name.startswith(f"{item}.") for item in self._debug_modules):
            return True
        ctx = get_log_context()
        return self._matches(record, ctx, "call_id", self._debug_call_ids) or self._matches(
            record, ctx, "skill", self._debug_skills
        )

    @staticmethod
    def _matches(record: logging.LogRecord, ctx: dict[str, str | None], key: str, allowed: frozenset[str]) -> bool:
        if not allowed:
            return False
        value = getattr(record, key, None) or ctx.get(key)
        return value in allowed


class ContextInjectionFilter(logging.Filter):
    """入队前把 contextvars 写入 record；监听线程中读不到协程上下文。"""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_log_context().items():
            if value is not None and getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class StructuredJsonFormatter(logging.Formatter):
    """LogRecord → 单行 JSON；未设置的可选字段不输出。"""

    def __init__(
        self,
        *,
        process_role: str,
        redaction_mode: str,
        payload_preview_chars: int,
        service: str = SERVICE_NAME,
    ) -> None:
        super().__init__()
        self._service = service
        self._process_role = process_role
        self._redaction_mode = redaction_mode
        self._payload_preview_chars = payload_preview_chars

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "process_role": self._process_role,
            "module": record.name,
            "message": redact_text(record.getMessage(), self._redaction_mode),
        }
        for key in LOG_CONTEXT_FIELDS:
            entry[key] = getattr(record, key, None) or ctx.get(key)
        for key in _PASSTHROUGH_FIELDS:
            entry[key] = getattr(record, key, None)
        for key in _NUMERIC_FIELDS:
            entry[key] = _as_number(getattr(record, key, None))

        error = getattr(record, "error", None)
        if error is None and record.exc_info:
            error = self.formatException(record.exc_info)
        entry["error"] = redact_text(error, self._redaction_mode)
        entry["payload_preview"] = render_payload_preview(
            getattr(record, "payload_preview", None),
            max_chars=self._payload_preview_chars,
            redaction_mode=self._redaction_mode,
        )
        return json.dumps({key: value for key, value in entry.items() if value is not None}, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """开发环境的单行可读格式。"""

    def format(self, record: logging.LogRecord) -> str:
        parts = [self.formatTime(record, "%H:%M:%S"), f"{record.levelname:<7}", record.name]
        event = getattr(record, "event", None)
        if event:
            parts.append(f"[{event}]")
        call_id = getattr(record, "call_id", None)
        if call_id:
            parts.append(f"call={call_id[:8]}")
        parts.append(record.getMessage())
        error = getattr(record, "error", None)
        if error:
            parts.append(f"error={error}")
        return " ".join(parts)


def _level(level_text: str) -> int:
    level = logging.getLevelName(str(level_text).upper())
    return level if isinstance(level, int) else logging.INFO


def _log_file_for(log_dir: Path, process_role: str) -> Path:
    root = log_dir if log_dir.is_absolute() else (Path.cwd() / log_dir).resolve()
    role_dir = root / process_role
    role_dir.mkdir(parents=True, exist_ok=True)
    return role_dir / f"{SERVICE_NAME}.jsonl"


def _detach_queue_handlers(root: logging.Logger) -> None:
    for handler in [item for item in root.handlers if isinstance(item, QueueHandler)]:
        root.removeHandler(handler)


def configure_logging(settings: Settings, *, process_role: str) -> Path:
    """初始化全局日志：调用线程只入队，后台监听线程写 JSONL 文件。

    ERROR 同步到 stderr；开启 log_console 时改为把全部记录以可读格式打到 stdout。
    """
    global _listener
    shutdown_logging()

    log_file = _log_file_for(settings.log_dir, process_role)
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        StructuredJsonFormatter(
            process_role=process_role,
            redaction_mode=settings.log_redaction_mode,
            payload_preview_chars=settings.log_payload_preview_chars,
        )
    )
    if settings.log_console:
        stream_handler = logging.StreamHandler(stream=sys.stdout)
        stream_handler.setFormatter(ConsoleFormatter())
    else:
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        stream_handler.setLevel(logging.ERROR)
        stream_handler.setFormatter(file_handler.formatter)

    records: SimpleQueue[logging.LogRecord] = SimpleQueue()
    queue_handler = QueueHandler(records)
    queue_handler.addFilter(ContextInjectionFilter())
    queue_handler.addFilter(
        DebugRoutingFilter(
            min_level=_level(settings.log_level),
            debug_modules=settings.log_debug_modules_list(),
            debug_call_ids=settings.log_debug_call_ids_list(),
            debug_skills=settings.log_debug_skills_list(),
        )
    )

    root = logging.getLogger()
    _detach_queue_handlers(root)
    root.addHandler(queue_handler)
    root.setLevel(logging.DEBUG)

    _listener = QueueListener(records, file_handler, stream_handler, respect_handler_level=True)
    _listener.start()

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return log_file


def shutdown_logging() -> None:
    """刷出队列中的剩余记录，关闭文件句柄并摘除队列 handler。"""
    global _listener
    listener, _listener = _listener, None
    if listener is None:
        return
    listener.stop()
    for handler in listener.handlers:
        try:
            handler.close()
        except OSError:
            pass
    _detach_queue_handlers(logging.getLogger())
