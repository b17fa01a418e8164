"""创作者技能运行时：把存储中的配置编译为处理函数并同步到注册中心。"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from agentskills.domain.enums import CreatorSkillType
from agentskills.domain.models import SkillContext, SkillHandler
from agentskills.domain.skills.creator import CreatorSkill, render_template
from agentskills.domain.skills.registry import DEFAULT_DESCRIPTION, SkillRegistry
from agentskills.infra.storage.creator_store import CreatorSkillStore

logger = logging.getLogger(__name__)

EMPTY_STATIC_RESULT = "(empty result)"
BODYLESS_METHODS = ("GET", "HEAD")


def _parse_headers(text: str) -> dict[str, str]:
    try:
        parsed = json.loads(text or "{}")
    except ValueError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(key): str(value) for key, value in parsed.items()}


class CreatorSkillRuntime:
    """创作者技能运行时，记录上一次注册过的名称以便清理已删除的技能。"""

    def __init__(self, store: CreatorSkillStore, registry: SkillRegistry, http_client: httpx.AsyncClient) -> None:
        self._store = store
        self._registry = registry
        self._http_client = http_client
        self._registered: set[str] = set()

    @property
    def registered_names(self) -> set[str]:
        return set(self._registered)

    def register_all(self) -> int:
        """重新读取存储并注册全部技能，返回读取到的配置数量。"""
        skills = self._store.list()
        next_names = {skill.name for skill in skills if skill.name}
        for stale in self._registered - next_names:
            self._registry.remove(stale)
        self._registered = next_names

        for skill in skills:
            if not skill.name:
                continue
            self._registry.register(
                {
                    "name": skill.name,
                    "description": skill.description or DEFAULT_DESCRIPTION,
                    "enabled": skill.enabled,
                    "action": self.build_handler(skill),
                }
            )
        logger.info(
            "creator skills registered",
            extra={"event": "creator.skills.registered", "count": len(next_names)},
        )
        return len(skills)

    def build_handler(self, skill: CreatorSkill) -> SkillHandler:
        if skill.type is CreatorSkillType.http:
            return self._http_handler(skill)
        return self._static_handler(skill)

    @staticmethod
    def _static_handler(skill: CreatorSkill) -> SkillHandler:
        template = skill.static_text

        async def handler(ctx: SkillContext) -> str:
            return render_template(template, ctx.args) or EMPTY_STATIC_RESULT

        return handler

    def _http_handler(self, skill: CreatorSkill) -> SkillHandler:
        config = skill.http.model_copy()
        client = self._http_client

        async def handler(ctx: SkillContext) -> Any:
            url = config.url.strip()
            if not url:
                return {"ok": False, "error": "http.url is empty"}
            args = ctx.args
            headers = _parse_headers(render_template(config.headers_json, args))
            content = None
            if config.method not in BODYLESS_METHODS:
                content = render_template(config.body_json, args).encode("utf-8")

            started = time.perf_counter()
            response = await client.request(
                config.method,
                url,
                headers=headers,
                content=content,
                timeout=config.timeout_ms / 1000,
            )
            logger.info(
                "creator http skill completed",
                extra={
                    "event": "creator.http.completed",
                    "external_service": "creator_http",
                    "op": f"{config.method} {url}",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "status_code": response.status_code,
                },
            )
            content_type = response.headers.get("content-type", "")
            if config.response_type != "text" and "application/json" in content_type:
                try:
                    return response.json()
                except ValueError:
                    return response.text
            return response.text

        return handler
