"""spawn 工具：把耗时任务交给后台子代理，立即返回确认文本。"""

from typing import TYPE_CHECKING, Any

from ingenium.agent.tools.base import ContextualTool

if TYPE_CHECKING:
    from ingenium.agent.subagent import SubagentManager


class SpawnTool(ContextualTool):
    """SubagentManager.spawn 的工具外壳，路由上下文决定结果回报到哪里。"""

    def __init__(self, manager: "SubagentManager"):
        super().__init__("cli", "direct")
        self._manager = manager

    @property
    def name(self) -> str:
        return "spawn"

    @property
    def description(self) -> str:
        return (
            "Spawn a subagent to handle a task in the background. "
            "Use this for complex or time-consuming tasks that can run independently. "
            "The subagent will complete the task and report back when done."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "task": {"type": "string", "description": "The task for the subagent to complete"},
                "label": {"type": "string", "description": "Optional short label for the task (for display)"},
            },
            "required": ["task"],
        }

    async def execute(self, task: str, label: str | None = None, **kwargs: Any) -> str:
        origin_channel, origin_chat_id = self.current_context
        return await self._manager.spawn(
            task=task,
            label=label,
            origin_channel=origin_channel,
            origin_chat_id=origin_chat_id,
        )
