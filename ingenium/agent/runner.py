"""
工具调用循环：主 Agent 与子代理共用的状态机。

    CALL_MODEL → 有 tool_calls → EXECUTE_TOOLS（按模型给出的顺序逐个执行）→ CALL_MODEL ...
               → 无 tool_calls → 结束，content 即最终回答

最多调用模型 max_iterations 次；用尽仍未得到最终回答时 final_content 为 None，
由调用方决定兜底文本。
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ingenium.agent.context import ContextBuilder
from ingenium.agent.tools.registry import ToolRegistry
from ingenium.providers.base import LLMProvider


class LoopCancelledError(Exception):
    """cancel_event 在两次模型调用或两次工具调用之间被触发。"""


@dataclass
class LoopResult:
    final_content: str | None
    tools_used: list[str] = field(default_factory=list)
    iterations: int = 0


async def run_tool_loop(
    provider: LLMProvider,
    tools: ToolRegistry,
    messages: list[dict[str, Any]],
    model: str,
    max_iterations: int,
    max_tokens: int = 4096,
    temperature: float = 0.7,
    cancel_event: asyncio.Event | None = None,
    log_prefix: str = "",
) -> LoopResult:
    """
    运行工具调用循环，messages 会被就地追加 assistant / tool 消息。

    参数:
        provider: 模型提供者，约定不抛异常
        tools: 本次循环可用的工具
        messages: 初始消息（system + 历史 + user）
        max_iterations: 模型调用次数上限
        cancel_event: 每次调用模型前、每次执行工具前检查，并传给工具注册表

    异常:
        LoopCancelledError: 检测到 cancel_event 已触发
    """
    result = LoopResult(final_content=None)

    while result.iterations < max_iterations:
        _check_cancelled(cancel_event)
        result.iterations += 1

        response = await provider.chat(
            messages=messages,
            tools=tools.get_definitions(),
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        if not response.has_tool_calls:
            result.final_content = response.content
            break

        ContextBuilder.add_assistant_message(
            messages,
            response.content,
            [tc.to_message_dict() for tc in response.tool_calls],
            reasoning_content=response.reasoning_content,
        )

        for tool_call in response.tool_calls:
            _check_cancelled(cancel_event)
            result.tools_used.append(tool_call.name)
            args_str = json.dumps(tool_call.arguments, ensure_ascii=False)
            logger.info(f"{log_prefix}Tool call: {tool_call.name}({args_str[:200]})")
            output = await tools.execute(tool_call.name, tool_call.arguments, cancel_event=cancel_event)
            ContextBuilder.add_tool_result(messages, tool_call.id, tool_call.name, output)

    return result


def _check_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise LoopCancelledError()
