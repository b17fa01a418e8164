"""领域异常定义：宿主协作方不可用与创作者技能配置错误。"""

from __future__ import annotations


class AgentSkillsError(RuntimeError):
    pass


class HostUnavailableError(AgentSkillsError):
    """宿主接口缺失或调用失败。"""


class CreatorSkillError(AgentSkillsError):
    """创作者技能配置无法执行。"""
