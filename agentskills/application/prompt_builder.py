"""提示词注入：System 能力清单 + 贴近最后一条用户消息的深度提醒。"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

from agentskills.domain.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)

CALL_FORMAT_EXAMPLE = "[CALL: skill_name({...json args...})]"
PROMPT_STRING_FIELDS = ("prompt", "chat_completion_prompt", "text")


def _append_to_string_field(data: MutableMapping[str, Any], key: str, addition: str) -> bool:
    if not addition or not isinstance(data.get(key), str):
        return False
    data[key] = f"{data[key]}\n\n{addition}".strip()
    return True


class PromptBuilder:
    """根据已启用技能生成调用说明，并注入到宿主请求数据中。"""

    def __init__(self, registry: SkillRegistry, *, depth_note_max_skills: int = 24) -> None:
        self._registry = registry
        self._depth_note_max_skills = depth_note_max_skills

    def build_system_prompt(self) -> str:
        enabled = self._registry.list_enabled()
        if not enabled:
            return ""
        lines = [
            "You can call external skills via a strict text tag.",
            "When needed, output EXACTLY one call tag in this format:",
            CALL_FORMAT_EXAMPLE,
            "",
            "Available skills:",
        ]
        lines.extend(f"- {skill.name}: {skill.description}" for skill in enabled)
        lines.extend(
            [
                "",
                "Rules:",
                "- Only output the call tag when you need a skill.",
                "- Use JSON args when possible.",
                "- After you receive a system message with the result, continue normally.",
            ]
        )
        return "\n".join(lines)

    def build_depth_note(self) -> str:
        """紧凑提醒，用于服务端弱化或剥离 System Prompt 的场景。"""
        enabled = self._registry.list_enabled()
        if not enabled:
            return ""
        names = ", ".join(skill.name for skill in enabled[: self._depth_note_max_skills])
        return (
            "Author's Note (tool calling): If you need a skill, output a single tag like "
            f"[CALL: skill_name({{...}})]. Skills: {names}"
        )

    def inject(self, data: Any) -> bool:
        """就地修改宿主请求数据，返回是否注入了内容；任何异常只记录日志。"""
        try:
            return self._inject(data)
        except Exception as exc:
            logger.warning(
                "prompt injection failed",
                extra={"event": "prompt.inject.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            return False

    def _inject(self, data: Any) -> bool:
        if not isinstance(data, MutableMapping):
            return False
        system_prompt = self.build_system_prompt()
        depth_note = self.build_depth_note()
        if not system_prompt and not depth_note:
            return False

        messages = data.get("messages")
        if isinstance(messages, list):
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            if depth_note:
                for message in reversed(messages):
                    if (
                        isinstance(message, MutableMapping)
                        and message.get("role") == "user"
                        and isinstance(message.get("content"), str)
                    ):
                        message["content"] = f"{message['content']}\n\n{depth_note}".strip()
                        break
            return True

        # 回退路径：单一 prompt 字符串，兼容部分 provider 的字段命名。
        for key in PROMPT_STRING_FIELDS:
            if _append_to_string_field(data, key, system_prompt):
                _append_to_string_field(data, key, depth_note)
                return True
        return False
