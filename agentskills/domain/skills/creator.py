"""创作者技能定义：无需写代码、以配置声明的静态模板或 HTTP 技能。"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from agentskills.domain.enums import CreatorSkillType
from agentskills.domain.protocol.arguments import safe_text

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
DEFAULT_HEADERS_JSON = '{"Content-Type":"application/json"}'
DEFAULT_BODY_JSON = '{"args": {{json args}} }'
DEFAULT_TIMEOUT_MS = 15_000

TEMPLATE_RE = re.compile(r"\{\{\s*(json\s+)?([a-zA-Z0-9_.-]+)\s*\}\}")
# 模板中的 args 指代整个参数对象。
ARGS_ROOT = "args"


def _field_default(model: type[BaseModel], info: ValidationInfo) -> Any:
    return model.model_fields[info.field_name].default


class CreatorHttpConfig(BaseModel):
    """HTTP 类型技能的请求配置。"""
    url: str = ""
    method: str = "POST"
    headers_json: str = DEFAULT_HEADERS_JSON
    body_json: str = DEFAULT_BODY_JSON
    response_type: str = "json"
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @field_validator("url", "headers_json", "body_json", mode="before")
    @classmethod
    def _text(cls, value: Any, info: ValidationInfo) -> str:
        return safe_text(value, _field_default(cls, info))

    @field_validator("method", mode="before")
    @classmethod
    def _method(cls, value: Any) -> str:
        method = safe_text(value).strip().upper()
        return method if method in HTTP_METHODS else "POST"

    @field_validator("response_type", mode="before")
    @classmethod
    def _response_type(cls, value: Any) -> str:
        return "text" if value == "text" else "json"

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def _timeout(cls, value: Any) -> int:
        if isinstance(value, bool):
            return DEFAULT_TIMEOUT_MS
        try:
            timeout = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return DEFAULT_TIMEOUT_MS
        return timeout if timeout > 0 else DEFAULT_TIMEOUT_MS


class CreatorSkill(BaseModel):
    """持久化的创作者技能配置。"""
    name: str = ""
    description: str = ""
    enabled: bool = True
    type: CreatorSkillType = CreatorSkillType.static
    static_text: str = "ok"
    http: CreatorHttpConfig = Field(default_factory=CreatorHttpConfig)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _stripped(cls, value: Any) -> str:
        return safe_text(value).strip()

    @field_validator("static_text", mode="before")
    @classmethod
    def _static_text(cls, value: Any, info: ValidationInfo) -> str:
        return safe_text(value, _field_default(cls, info))

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else True

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: Any) -> CreatorSkillType:
        try:
            return CreatorSkillType(value)
        except (TypeError, ValueError):
            return CreatorSkillType.static

    @field_validator("http", mode="before")
    @classmethod
    def _http(cls, value: Any) -> Any:
        if isinstance(value, CreatorHttpConfig):
            return value
        return value if isinstance(value, Mapping) else {}

    @classmethod
    def sanitize(cls, raw: Any) -> CreatorSkill:
        """宽松构造：非法或缺失字段一律回退默认值，不抛异常。"""
        if isinstance(raw, CreatorSkill):
            return raw.model_copy(deep=True)
        if not isinstance(raw, Mapping):
            return cls()
        known = {key: raw[key] for key in cls.model_fields if key in raw}
        return cls.model_validate(known)


def _lookup(args: Any, path: str) -> Any:
    if path == ARGS_ROOT:
        return args
    if path.startswith(f"{ARGS_ROOT}."):
        path = path[len(ARGS_ROOT) + 1 :]
    current = args
    for key in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    return current


def _render_value(value: Any, as_json: bool) -> str:
    if as_json:
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return "null"
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return safe_text(value)
    return safe_text(value)


def render_template(template: Any, args: Any) -> str:
    """简单模板渲染：支持 {{key}}、{{json key}} 与点号路径，取值来自调用参数。"""
    text = safe_text(template)

    def replace(match: re.Match[str]) -> str:
        return _render_value(_lookup(args, match.group(2)), bool(match.group(1)))

    return TEMPLATE_RE.sub(replace, text)
