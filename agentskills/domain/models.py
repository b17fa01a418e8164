"""领域数据结构定义：调用请求、结构化参数、技能描述与调用结果等值对象。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union
from uuid import uuid4

from agentskills.domain.enums import ArgumentKind, OutcomeStatus

RAW_ARGS_FIELD = "_raw"

Scalar = Union[str, int, float, bool, None]


@dataclass(slots=True, frozen=True)
class JsonArgs:
    """以 JSON 解析成功的参数。"""
    value: Any
    kind: ArgumentKind = field(default=ArgumentKind.json, init=False)

    def as_python(self) -> Any:
        return self.value


@dataclass(slots=True, frozen=True)
class KeyValueArgs:
    """以 key=value 列表解析成功的参数，值已做标量推断。"""
    values: dict[str, Scalar]
    kind: ArgumentKind = field(default=ArgumentKind.key_value, init=False)

    def as_python(self) -> dict[str, Scalar]:
        return dict(self.values)


@dataclass(slots=True, frozen=True)
class OpaqueArgs:
    """无法结构化解析的参数，原文保存在保留字段中。"""
    raw_text: str
    kind: ArgumentKind = field(default=ArgumentKind.opaque, init=False)

    def as_python(self) -> dict[str, str]:
        return {RAW_ARGS_FIELD: self.raw_text}


StructuredValue = Union[JsonArgs, KeyValueArgs, OpaqueArgs]


def _new_call_id() -> str:
    return uuid4().hex


@dataclass(slots=True, frozen=True)
class CallRequest:
    """从模型输出中识别出的一次技能调用请求，只被队列消费一次。"""
    skill_name: str
    arguments: StructuredValue
    raw_args: str
    raw_tag: str = ""
    call_id: str = field(default_factory=_new_call_id)


@dataclass(slots=True, frozen=True)
class SkillContext:
    """技能处理函数的入参。"""
    name: str
    arguments: StructuredValue
    raw_args: str

    @property
    def args(self) -> Any:
        return self.arguments.as_python()


SkillHandler = Callable[[SkillContext], Union[Any, Awaitable[Any]]]


@dataclass(slots=True)
class SkillDescriptor:
    """技能元信息与处理函数，由注册中心独占持有。"""
    name: str
    description: str
    handler: SkillHandler
    enabled: bool = True

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "description": self.description, "enabled": self.enabled}


@dataclass(slots=True)
class CallOutcome:
    """一次调用的处理结果，描述投递内容以及是否请求续写。"""
    call_id: str
    skill_name: str
    status: OutcomeStatus
    message: str = ""
    payload: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    continued: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.succeeded
