"""消息接口：接收模型输出文本，识别调用标签并交给执行队列。"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from agentskills.api.v1.schemas import CallOutcomeResponse, MessageRequest, MessageResponse
from agentskills.application.container import get_engine
from agentskills.application.engine import CallProtocolEngine

router = APIRouter()


def _engine() -> CallProtocolEngine:
    return get_engine()


@router.post("/messages", response_model=MessageResponse)
async def post_message(payload: MessageRequest, engine: CallProtocolEngine = Depends(_engine)) -> MessageResponse:
    """识别首个调用标签并入队；wait=true 时等待本次调用处理完成。"""
    data = payload.text if payload.text is not None else payload.data
    request = engine.detect(data)
    if request is None:
        return MessageResponse(detected=False, queued=False)

    future = engine.enqueue(request)
    if future is None:
        raise HTTPException(status_code=503, detail="execution queue unavailable")

    outcome = None
    if payload.wait:
        result = await future
        outcome = CallOutcomeResponse(**{**asdict(result), "status": result.status.value})
    return MessageResponse(
        detected=True,
        queued=True,
        skill_name=request.skill_name,
        call_id=request.call_id,
        outcome=outcome,
    )
