"""调用标签解析器：从模型自由文本中提取首个 [CALL: name(args)] 标签。"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from agentskills.domain.models import CallRequest
from agentskills.domain.protocol.arguments import coerce_arguments, safe_text


# 允许多余空格/换行，可穿透 **[CALL: ...]** 或代码块包裹；参数可选。
# [CALL: weather({"city":"Tokyo"})]
# [ CALL : weather ( city=Tokyo, days=3 ) ]
CALL_RE = re.compile(r"\[\s*CALL\s*:\s*([A-Za-z0-9_.-]+)\s*(?:\(\s*([\s\S]*?)\s*\))?\s*\]")

MESSAGE_TEXT_FIELDS = ("mes", "message", "text", "content")


def extract_first_call(text: object) -> CallRequest | None:
    """返回最左侧的调用请求；没有标签时返回 None，其后的标签忽略。"""
    match = CALL_RE.search(safe_text(text))
    if match is None:
        return None
    skill_name = match.group(1).strip()
    raw_args = (match.group(2) or "").strip()
    return CallRequest(
        skill_name=skill_name,
        arguments=coerce_arguments(raw_args),
        raw_args=raw_args,
        raw_tag=match.group(0),
    )


def extract_message_text(data: Any) -> str:
    """从宿主消息事件中取出文本，兼容多种字段命名。"""
    if isinstance(data, str):
        return data
    if isinstance(data, Mapping):
        for key in MESSAGE_TEXT_FIELDS:
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return ""
