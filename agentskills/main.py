"""FastAPI 应用入口：初始化生命周期、中间件、健康检查与路由挂载。"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request

from agentskills.api.router import api_router
from agentskills.application.container import get_creator_runtime, get_engine, shutdown_container_resources
from agentskills.config import get_settings
from agentskills.infra.logging.context import bind_log_context
from agentskills.infra.logging.setup import configure_logging, shutdown_logging

settings = get_settings()
logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期：启动时初始化日志、构建引擎并加载创作者技能，关闭时释放依赖资源。"""
    configure_logging(get_settings(), process_role="api")
    logger.info("api startup begin", extra={"event": "api.startup.started"})
    engine = get_engine()
    loaded = get_creator_runtime().register_all()
    logger.info(
        "api startup ready",
        extra={
            "event": "api.startup.succeeded",
            "count": loaded,
            "payload_preview": {"missing_host_capabilities": engine.capabilities.missing()},
        },
    )
    try:
        yield
    finally:
        logger.info("api shutdown begin", extra={"event": "api.shutdown.started"})
        await shutdown_container_resources()
        shutdown_logging()


app = FastAPI(title=settings.app_name, lifespan=lifespan)


def _log_http(request: Request, started: float, *, status_code: int | None = None, exc: Exception | None = None) -> None:
    extra = {
        "event": "http.request.failed" if exc is not None else "http.request.completed",
        "op": f"{request.method} {request.url.path}",
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        "status_code": status_code,
    }
    if exc is None:
        logger.info("http request completed", extra=extra)
        return
    extra.update(error_type=type(exc).__name__, error=str(exc))
    logger.exception("http request failed", extra=extra)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    """透传或生成请求 ID，绑定到日志上下文并回写响应头。"""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    started = time.perf_counter()
    with bind_log_context(request_id=request_id):
        try:
            response = await call_next(request)
        except Exception as exc:
            _log_http(request, started, exc=exc)
            raise
        _log_http(request, started, status_code=response.status_code)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz")
def healthz() -> dict[str, object]:
    engine = get_engine()
    return {
        "status": "ok",
        "skills": len(engine.registry.list_enabled()),
        "missing_host_capabilities": engine.capabilities.missing(),
    }


app.include_router(api_router)
