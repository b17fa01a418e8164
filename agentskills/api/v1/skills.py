"""技能目录接口：列出已启用技能并查询指定技能的元数据。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from agentskills.api.v1.schemas import SkillResponse
from agentskills.application.container import get_skill_registry
from agentskills.domain.skills.registry import SkillRegistry

router = APIRouter()


def _registry() -> SkillRegistry:
    """依赖注入辅助函数，返回技能注册中心实例。"""
    return get_skill_registry()


@router.get("/skills", response_model=list[SkillResponse])
def list_skills(
    include_disabled: bool = False,
    registry: SkillRegistry = Depends(_registry),
) -> list[SkillResponse]:
    """按注册顺序返回技能列表，默认只含已启用技能。"""
    if include_disabled:
        return [SkillResponse(**item) for item in registry.list_descriptors()]
    return [SkillResponse(**skill.to_dict()) for skill in registry.list_enabled()]


@router.get("/skills/{name}", response_model=SkillResponse)
def get_skill(name: str, registry: SkillRegistry = Depends(_registry)) -> SkillResponse:
    """返回指定技能的元数据。"""
    skill = registry.get(name)
    if skill is None:
        raise HTTPException(status_code=404, detail=f"skill not registered: {name}")
    return SkillResponse(**skill.to_dict())
