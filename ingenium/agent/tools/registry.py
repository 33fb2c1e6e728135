"""
工具注册表 - 按名称查找工具并隔离单次调用的失败。

AgentLoop 与子代理各自持有一个 ToolRegistry：
1. 启动时注册工具
2. 调用模型前用 get_definitions() 生成工具定义
3. 模型返回 tool_calls 后用 execute(name, params) 执行

execute() 从不抛异常：找不到工具、参数不合法、工具内部出错、调用前已被取消，
都会转换成以 "Error" 开头的字符串返回给模型。
"""

import asyncio
from typing import Any

from ingenium.agent.tools.base import Tool


class ToolRegistry:
    """名称 → 工具实例的映射。同名重复注册时后者覆盖前者。"""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """注销工具，不存在时忽略。"""
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_definitions(self) -> list[dict[str, Any]]:
        """所有工具的 OpenAI 格式定义，无副作用。"""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(
        self,
        name: str,
        params: dict[str, Any],
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """
        执行指定工具。

        参数:
            name: 模型给出的工具名
            params: 模型给出的参数
            cancel_event: 可选的取消令牌；已触发时直接返回取消提示，
                工具声明 accepts_cancel 时会被透传给工具

        返回:
            工具输出，或描述失败原因的错误字符串
        """
        tool = self._tools.get(name)
        if not tool:
            return f"Error: Tool '{name}' not found"
        if cancel_event is not None and cancel_event.is_set():
            return f"Error: Tool '{name}' cancelled"

        try:
            errors = tool.validate_params(params)
            if errors:
                return f"Error: Invalid parameters for tool '{name}': " + "; ".join(errors)
            if tool.accepts_cancel and cancel_event is not None:
                return await tool.execute(**params, cancel_event=cancel_event)
            return await tool.execute(**params)
        except Exception as e:
            return f"Error executing {name}: {str(e)}"

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
