"""依赖容器模块，负责单例化创建注册中心、熔断器、宿主客户端与引擎对象。"""

from __future__ import annotations

import logging
from functools import lru_cache

import httpx

from agentskills.application.creator_runtime import CreatorSkillRuntime
from agentskills.application.engine import CallProtocolEngine
from agentskills.config import get_settings
from agentskills.domain.skills.registry import SkillRegistry
from agentskills.infra.host.capabilities import HostCapabilities
from agentskills.infra.host.client import HostHttpClient
from agentskills.infra.security.circuit_breaker import CircuitBreaker
from agentskills.infra.storage.creator_store import CreatorSkillStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_skill_registry() -> SkillRegistry:
    """获取技能注册中心单例。"""
    return SkillRegistry()


@lru_cache(maxsize=1)
def get_circuit_breaker() -> CircuitBreaker:
    """获取全局熔断器单例，所有技能共享同一窗口。"""
    settings = get_settings()
    return CircuitBreaker(window_ms=settings.breaker_window_ms, max_calls=settings.breaker_max_calls)


@lru_cache(maxsize=1)
def get_host_client() -> HostHttpClient | None:
    """获取宿主 webhook 客户端；未配置 host_base_url 时返回 None。"""
    settings = get_settings()
    if not settings.host_base_url:
        return None
    return HostHttpClient(
        settings.host_base_url,
        message_path=settings.host_message_path,
        continue_path=settings.host_continue_path,
        notice_path=settings.host_notice_path,
        api_token=settings.host_api_token,
        timeout_seconds=settings.host_request_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_engine() -> CallProtocolEngine:
    """获取调用协议引擎单例，宿主能力在构建时协商一次。"""
    return CallProtocolEngine(
        settings=get_settings(),
        registry=get_skill_registry(),
        breaker=get_circuit_breaker(),
        capabilities=HostCapabilities.negotiate(get_host_client()),
    )


@lru_cache(maxsize=1)
def get_creator_store() -> CreatorSkillStore:
    """获取创作者技能存储单例。"""
    return CreatorSkillStore(get_settings().creator_skills_path)


@lru_cache(maxsize=1)
def get_creator_http_client() -> httpx.AsyncClient:
    """获取 HTTP 型创作者技能共用的异步客户端。"""
    return httpx.AsyncClient(follow_redirects=True)


@lru_cache(maxsize=1)
def get_creator_runtime() -> CreatorSkillRuntime:
    """获取创作者技能运行时单例。"""
    return CreatorSkillRuntime(get_creator_store(), get_skill_registry(), get_creator_http_client())


async def shutdown_container_resources() -> None:
    """停止执行队列、关闭共享客户端并清理依赖容器缓存。"""
    if get_engine.cache_info().currsize:
        try:
            await get_engine().close()
        except Exception as exc:
            logger.warning(
                "engine close failed",
                extra={"event": "container.shutdown.failed", "op": "engine", "error_type": type(exc).__name__},
            )
    if get_host_client.cache_info().currsize:
        client = get_host_client()
        if client is not None:
            try:
                await client.close()
            except Exception as exc:
                logger.warning(
                    "host client close failed",
                    extra={"event": "container.shutdown.failed", "op": "host_client", "error_type": type(exc).__name__},
                )
    if get_creator_http_client.cache_info().currsize:
        try:
            await get_creator_http_client().aclose()
        except Exception as exc:
            logger.warning(
                "creator http client close failed",
                extra={"event": "container.shutdown.failed", "op": "creator_http", "error_type": type(exc).__name__},
            )

    # 按依赖顺序清理缓存，确保后续请求可重新构建全新实例。
    for provider in (
        get_creator_runtime,
        get_creator_http_client,
        get_creator_store,
        get_engine,
        get_host_client,
        get_circuit_breaker,
        get_skill_registry,
    ):
        provider.cache_clear()
