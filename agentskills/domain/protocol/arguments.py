"""调用参数强容错解析：JSON → key=value → 原文兜底，永不抛出。"""

from __future__ import annotations

import json
import logging
import re

from agentskills.domain.models import JsonArgs, KeyValueArgs, OpaqueArgs, Scalar, StructuredValue

logger = logging.getLogger(__name__)

NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
BOOL_RE = re.compile(r"^(true|false)$", re.IGNORECASE)
NULL_RE = re.compile(r"^null$", re.IGNORECASE)

def _reject_constant(token: str) -> float:
    raise ValueError(f"non-standard JSON constant: {token}")


_JSON_BOUNDS = (("{", "}"), ("[", "]"), ('"', '"'))


def safe_text(value: object, fallback: str = "") -> str:
    """将任意对象转为字符串；None 或 __str__ 失败时返回 fallback。"""
    if isinstance(value, str):
        return value
    if value is None:
        return fallback
    try:
        return str(value)
    except Exception:
        return fallback


def looks_like_json(text: str) -> bool:
    """判断文本是否被 {}、[] 或一对双引号包裹。"""
    return len(text) >= 2 and any(text.startswith(lo) and text.endswith(hi) for lo, hi in _JSON_BOUNDS)


def coerce_scalar(value: str) -> Scalar:
    """对 key=value 右侧文本做标量推断。"""
    text = value.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if NUMBER_RE.match(text):
        return float(text) if "." in text else int(text)
    if BOOL_RE.match(text):
        return text.lower() == "true"
    if NULL_RE.match(text):
        return None
    return text


def parse_key_values(text: str) -> dict[str, Scalar] | None:
    """按逗号切分并解析 key=value；一对都没识别出来时返回 None。"""
    values: dict[str, Scalar] = {}
    parsed_any = False
    for part in (chunk.strip() for chunk in text.split(",")):
        if not part:
            continue
        idx = part.find("=")
        if idx <= 0:
            continue
        key = part[:idx].strip()
        if not key:
            continue
        parsed_any = True
        values[key] = coerce_scalar(part[idx + 1 :])
    return values if parsed_any else None


def coerce_arguments(raw: object) -> StructuredValue:
    """将括号内原始参数文本转换为结构化参数。

    解析顺序（首个成功者生效）：
    - 空文本 → 空映射
    - 形似 JSON → json.loads
    - key=value 列表 → 带标量推断的映射
    - 其余 → OpaqueArgs，原文保存在 ``_raw``
    """
    text = safe_text(raw).strip()
    if not text:
        return KeyValueArgs({})
    try:
        if looks_like_json(text):
            try:
                return JsonArgs(json.loads(text, parse_constant=_reject_constant))
            except ValueError:
                # 形似 JSON 但解析失败，继续尝试 key=value。
                pass
        values = parse_key_values(text)
        if values is not None:
            return KeyValueArgs(values)
    except Exception as exc:
        logger.warning(
            "argument coercion degraded to opaque",
            extra={"event": "call.args.degraded", "error_type": type(exc).__name__, "error": str(exc)},
        )
    return OpaqueArgs(text)
