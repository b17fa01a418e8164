"""提示词接口：把技能调用说明注入到宿主请求数据中并返回。"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from agentskills.api.v1.schemas import PromptInjectResponse
from agentskills.application.container import get_engine
from agentskills.application.engine import CallProtocolEngine

router = APIRouter()


def _engine() -> CallProtocolEngine:
    return get_engine()


@router.post("/prompt/inject", response_model=PromptInjectResponse)
def inject_prompt(
    data: dict[str, Any] = Body(...),
    engine: CallProtocolEngine = Depends(_engine),
) -> PromptInjectResponse:
    injected = engine.inject_prompt(data)
    return PromptInjectResponse(injected=injected, data=data)
