"""技能注册中心：管理技能注册、覆盖、查询与移除，对外永不抛异常。"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any

from agentskills.domain.models import SkillContext, SkillDescriptor, SkillHandler
from agentskills.domain.protocol.arguments import safe_text

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "(no description)"


async def _missing_handler(_ctx: SkillContext) -> dict[str, object]:
    return {"ok": False, "error": "No action() provided for this skill."}


class SkillRegistry:
    """技能注册中心，按名称唯一保存技能，后注册者覆盖先注册者。

    API 路由在线程池中读写同一实例，增删与遍历都在锁内进行，读取方拿到的是快照。
    """

    def __init__(self) -> None:
        self._skills: dict[str, SkillDescriptor] = {}
        self._lock = threading.Lock()

    def register(self, config: Mapping[str, Any] | SkillDescriptor | None) -> str | None:
        """注册或覆盖技能并返回实际生效的名称。

        缺失字段自动补默认值，只告警不报错；内部异常时记录日志并返回 None。
        """
        try:
            with self._lock:
                descriptor = self._normalize(config)
                existed = descriptor.name in self._skills
                self._skills[descriptor.name] = descriptor
            logger.debug(
                "skill overwritten" if existed else "skill registered",
                extra={
                    "event": "skill.overwritten" if existed else "skill.registered",
                    "skill": descriptor.name,
                    "payload_preview": {"enabled": descriptor.enabled},
                },
            )
            return descriptor.name
        except Exception as exc:
            logger.error(
                "skill registration failed",
                extra={"event": "skill.register.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            return None

    def get(self, name: str) -> SkillDescriptor | None:
        return self._skills.get(name)

    def remove(self, name: str) -> bool:
        """移除技能；名称不存在时视为无操作。"""
        with self._lock:
            removed = self._skills.pop(name, None) is not None
        if removed:
            logger.debug("skill removed", extra={"event": "skill.removed", "skill": name})
        return removed

    def names(self) -> list[str]:
        with self._lock:
            return list(self._skills)

    def list_enabled(self) -> list[SkillDescriptor]:
        """按注册顺序返回全部已启用技能，保证提示词列表稳定可复现。"""
        return [skill for skill in self._snapshot() if skill.enabled]

    def list_descriptors(self) -> list[dict[str, object]]:
        return [skill.to_dict() for skill in self._snapshot()]

    def _snapshot(self) -> list[SkillDescriptor]:
        with self._lock:
            return list(self._skills.values())

    def _normalize(self, config: Mapping[str, Any] | SkillDescriptor | None) -> SkillDescriptor:
        if isinstance(config, SkillDescriptor):
            cfg: Mapping[str, Any] = {
                "name": config.name,
                "description": config.description,
                "handler": config.handler,
                "enabled": config.enabled,
            }
        elif isinstance(config, Mapping):
            cfg = config
        else:
            cfg = {}

        name = safe_text(cfg.get("name")).strip()
        if not name:
            name = self._generate_name()
            logger.warning(
                "register() missing name; generated one",
                extra={"event": "skill.name.generated", "skill": name},
            )

        description = safe_text(cfg.get("description")).strip() or DEFAULT_DESCRIPTION

        # 宿主侧接口沿用 action 命名，Python 侧也接受 handler。
        handler: SkillHandler = cfg.get("action") or cfg.get("handler")  # type: ignore[assignment]
        if not callable(handler):
            handler = _missing_handler

        enabled = cfg.get("enabled")
        return SkillDescriptor(
            name=name,
            description=description,
            handler=handler,
            enabled=enabled if isinstance(enabled, bool) else True,
        )

    def _generate_name(self) -> str:
        base = f"unnamed_{int(time.time())}"
        if base not in self._skills:
            return base
        idx = 1
        while f"{base}_{idx}" in self._skills:
            idx += 1
        return f"{base}_{idx}"
