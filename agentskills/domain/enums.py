"""领域枚举定义：统一调用结果、参数形态与提示级别取值。"""

from __future__ import annotations

from enum import Enum


class OutcomeStatus(str, Enum):
    """单次技能调用的终态枚举。"""
    succeeded = "succeeded"
    failed = "failed"
    not_found = "not_found"
    disabled = "disabled"
    breaker_tripped = "breaker_tripped"
    engine_error = "engine_error"


class ArgumentKind(str, Enum):
    """调用参数解析形态枚举。"""
    json = "json"
    key_value = "key_value"
    opaque = "opaque"


class NoticeLevel(str, Enum):
    """瞬时提示级别枚举。"""
    info = "info"
    error = "error"


class CreatorSkillType(str, Enum):
    """创作者技能类型枚举。"""
    static = "static"
    http = "http"
