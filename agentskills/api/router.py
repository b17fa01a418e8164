"""API 总路由配置，按业务域注册技能、消息、提示词与创作者技能子路由。"""

from __future__ import annotations

from fastapi import APIRouter

from agentskills.api.v1.creator_skills import router as creator_skills_router
from agentskills.api.v1.messages import router as messages_router
from agentskills.api.v1.prompt import router as prompt_router
from agentskills.api.v1.skills import router as skills_router
from agentskills.config import get_settings

settings = get_settings()

api_router = APIRouter(prefix=settings.api_prefix)
api_router.include_router(skills_router, tags=["skills"])
api_router.include_router(messages_router, tags=["messages"])
api_router.include_router(prompt_router, tags=["prompt"])
api_router.include_router(creator_skills_router, tags=["creator-skills"])
