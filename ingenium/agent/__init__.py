"""Agent 核心：主循环、上下文构建、记忆、技能与后台子代理。"""

from ingenium.agent.context import ContextBuilder
from ingenium.agent.loop import AgentLoop
from ingenium.agent.memory import MemoryStore
from ingenium.agent.skills import SkillsLoader
from ingenium.agent.subagent import SubagentManager

__all__ = ["AgentLoop", "ContextBuilder", "MemoryStore", "SkillsLoader", "SubagentManager"]
