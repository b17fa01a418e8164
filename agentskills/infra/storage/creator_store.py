"""创作者技能存储：以 JSON 文件持久化技能配置，读写失败只记录日志。"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from agentskills.domain.errors import CreatorSkillError
from agentskills.domain.skills.creator import CreatorSkill

logger = logging.getLogger(__name__)


class CreatorSkillStore:
    """创作者技能文件存储，按名称唯一。"""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def list(self) -> list[CreatorSkill]:
        return [CreatorSkill.sanitize(item) for item in self._read()]

    def get(self, name: str) -> CreatorSkill | None:
        return next((skill for skill in self.list() if skill.name == name), None)

    def upsert(self, raw: Any) -> CreatorSkill:
        """新增或按名称覆盖一条技能配置。"""
        skill = CreatorSkill.sanitize(raw)
        if not skill.name:
            raise CreatorSkillError("creator skill name is required")
        skills = self.list()
        for idx, existing in enumerate(skills):
            if existing.name == skill.name:
                skills[idx] = skill
                break
        else:
            skills.append(skill)
        self._write(skills)
        return skill

    def remove(self, name: str) -> bool:
        target = name.strip()
        if not target:
            return False
        skills = self.list()
        remaining = [skill for skill in skills if skill.name != target]
        if len(remaining) == len(skills):
            return False
        return self._write(remaining)

    def replace_all(self, raw_skills: Any) -> int:
        """整体替换配置（导入），丢弃无名称条目，返回保留数量。"""
        if not isinstance(raw_skills, list):
            raise CreatorSkillError("creator skills must be a list")
        skills = [skill for skill in (CreatorSkill.sanitize(item) for item in raw_skills) if skill.name]
        self._write(skills)
        return len(skills)

    def export_json(self) -> str:
        return json.dumps([skill.model_dump(mode="json") for skill in self.list()], ensure_ascii=False, indent=2)

    def _read(self) -> list[Any]:
        if not self._path.exists():
            return []
        try:
            parsed = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "creator skill file unreadable",
                extra={
                    "event": "creator.store.read_failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "payload_preview": {"path": str(self._path)},
                },
            )
            return []
        return parsed if isinstance(parsed, list) else []

    def _write(self, skills: list[CreatorSkill]) -> bool:
        payload = [skill.model_dump(mode="json") for skill in skills]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # 先写临时文件再替换，避免中途失败留下半截 JSON。
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            logger.warning(
                "creator skill file write failed",
                extra={
                    "event": "creator.store.write_failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "payload_preview": {"path": str(self._path)},
                },
            )
            return False
        logger.debug(
            "creator skills saved",
            extra={"event": "creator.store.saved", "count": len(skills)},
        )
        return True
