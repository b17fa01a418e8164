"""创作者技能接口：查看、保存、删除、导入配置，并重新同步到注册中心。"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from agentskills.api.v1.schemas import (
    CreatorSkillImportResponse,
    CreatorSkillListResponse,
    CreatorSkillReloadResponse,
)
from agentskills.application.container import get_creator_runtime, get_creator_store
from agentskills.application.creator_runtime import CreatorSkillRuntime
from agentskills.domain.errors import CreatorSkillError
from agentskills.infra.storage.creator_store import CreatorSkillStore

router = APIRouter()


def _store() -> CreatorSkillStore:
    return get_creator_store()


def _runtime() -> CreatorSkillRuntime:
    return get_creator_runtime()


def _reload(runtime: CreatorSkillRuntime) -> CreatorSkillReloadResponse:
    loaded = runtime.register_all()
    return CreatorSkillReloadResponse(loaded=loaded, registered=sorted(runtime.registered_names))


@router.get("/creator-skills", response_model=CreatorSkillListResponse)
def list_creator_skills(store: CreatorSkillStore = Depends(_store)) -> CreatorSkillListResponse:
    return CreatorSkillListResponse(
        path=str(store.path),
        skills=[skill.model_dump(mode="json") for skill in store.list()],
    )


@router.put("/creator-skills", response_model=CreatorSkillImportResponse)
def import_creator_skills(
    skills: Any = Body(...),
    store: CreatorSkillStore = Depends(_store),
    runtime: CreatorSkillRuntime = Depends(_runtime),
) -> CreatorSkillImportResponse:
    """整体替换创作者技能配置（导入）。"""
    try:
        saved = store.replace_all(skills)
    except CreatorSkillError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    runtime.register_all()
    return CreatorSkillImportResponse(saved=saved, registered=sorted(runtime.registered_names))


@router.post("/creator-skills", response_model=CreatorSkillReloadResponse)
def upsert_creator_skill(
    skill: dict[str, Any] = Body(...),
    store: CreatorSkillStore = Depends(_store),
    runtime: CreatorSkillRuntime = Depends(_runtime),
) -> CreatorSkillReloadResponse:
    """新增或按名称覆盖一条创作者技能。"""
    try:
        store.upsert(skill)
    except CreatorSkillError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _reload(runtime)


@router.delete("/creator-skills/{name}", response_model=CreatorSkillReloadResponse)
def delete_creator_skill(
    name: str,
    store: CreatorSkillStore = Depends(_store),
    runtime: CreatorSkillRuntime = Depends(_runtime),
) -> CreatorSkillReloadResponse:
    if not store.remove(name):
        raise HTTPException(status_code=404, detail=f"creator skill not found: {name}")
    return _reload(runtime)


@router.post("/creator-skills/reload", response_model=CreatorSkillReloadResponse)
def reload_creator_skills(runtime: CreatorSkillRuntime = Depends(_runtime)) -> CreatorSkillReloadResponse:
    """重新读取配置文件并同步注册中心。"""
    return _reload(runtime)
