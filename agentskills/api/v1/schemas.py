"""API 请求与响应数据模型定义，约束技能、消息与提示词接口结构。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SkillResponse(BaseModel):
    """技能元数据接口响应模型。"""
    name: str
    description: str
    enabled: bool


class MessageRequest(BaseModel):
    """模型输出消息请求模型，text 为空时尝试从 data 中提取正文。"""
    text: str | None = None
    data: dict[str, Any] | None = None
    wait: bool = False


class CallOutcomeResponse(BaseModel):
    """单次调用结果响应模型。"""
    call_id: str
    skill_name: str
    status: str
    message: str
    payload: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    continued: bool


class MessageResponse(BaseModel):
    """消息处理接口响应模型。"""
    detected: bool
    queued: bool
    skill_name: str | None = None
    call_id: str | None = None
    outcome: CallOutcomeResponse | None = None


class PromptInjectResponse(BaseModel):
    """提示词注入接口响应模型。"""
    injected: bool
    data: dict[str, Any]


class CreatorSkillListResponse(BaseModel):
    """创作者技能列表接口响应模型。"""
    path: str
    skills: list[dict[str, Any]] = Field(default_factory=list)


class CreatorSkillReloadResponse(BaseModel):
    """创作者技能重载接口响应模型。"""
    loaded: int
    registered: list[str]


class CreatorSkillImportResponse(BaseModel):
    """创作者技能批量导入接口响应模型。"""
    saved: int
    registered: list[str]
