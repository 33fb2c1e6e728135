"""
后台子代理。

主 Agent 通过 spawn 工具把耗时任务交给子代理：
1. spawn() 创建 asyncio.Task 后立即返回确认文本，不等待任务进展
2. 子代理使用独立的消息列表、受限的工具集（没有 message 与 spawn）和更小的迭代上限
3. 完成或失败时，把结果包装成 channel="system" 的 InboundMessage 发布到总线，
   chat_id 为 "原渠道:原聊天"，主 Agent 的系统消息入口据此把转述发回原处

任务表只在事件循环线程上修改（spawn 与 done 回调），两处都不跨越 await。
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from ingenium.agent.runner import LoopCancelledError, run_tool_loop
from ingenium.agent.tools.filesystem import EditFileTool, ListDirTool, ReadFileTool, WriteFileTool
from ingenium.agent.tools.registry import ToolRegistry
from ingenium.agent.tools.shell import ExecTool
from ingenium.agent.tools.web import WebFetchTool, WebSearchTool
from ingenium.bus.events import SYSTEM_CHANNEL, InboundMessage
from ingenium.bus.queue import MessageBus
from ingenium.config.schema import ExecToolConfig
from ingenium.providers.base import LLMProvider
from ingenium.utils.helpers import create_session_key

LABEL_MAX_CHARS = 30


@dataclass
class RunningTask:
    """任务表中的一项：取消通过 cancel_event 协作完成。"""
    id: str
    label: str
    task: asyncio.Task
    cancel_event: asyncio.Event


class SubagentManager:
    """
    创建、跟踪与取消后台子代理。

    属性:
        provider: 与主 Agent 共享的 LLM 提供者
        workspace: 子代理文件与 exec 工具的工作目录
        bus: 结果回报所用的消息总线
        max_iterations: 子代理的模型调用上限
        _running: {task_id: RunningTask}
    """

    def __init__(
        self,
        provider: LLMProvider,
        workspace: Path,
        bus: MessageBus,
        model: str | None = None,
        max_iterations: int = 15,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        brave_api_key: str | None = None,
        exec_config: ExecToolConfig | None = None,
        restrict_to_workspace: bool = False,
    ):
        self.provider = provider
        self.workspace = workspace
        self.bus = bus
        self.model = model or provider.get_default_model()
        self.max_iterations = max_iterations
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.brave_api_key = brave_api_key
        self.exec_config = exec_config or ExecToolConfig()
        self.restrict_to_workspace = restrict_to_workspace
        self._running: dict[str, RunningTask] = {}

    async def spawn(
        self,
        task: str,
        label: str | None = None,
        origin_channel: str = "cli",
        origin_chat_id: str = "direct",
    ) -> str:
        """
        启动后台子代理并立即返回确认文本。

        参数:
            task: 任务描述，作为子代理的 user 消息
            label: 显示名；缺省时取任务前 30 个字符
            origin_channel / origin_chat_id: 结果回报的目标
        """
        task_id = uuid.uuid4().hex[:8]
        display_label = label or (task[:LABEL_MAX_CHARS] + ("..." if len(task) > LABEL_MAX_CHARS else ""))
        cancel_event = asyncio.Event()

        bg_task = asyncio.create_task(
            self._run_subagent(task_id, task, display_label, origin_channel, origin_chat_id, cancel_event),
            name=f"subagent-{task_id}",
        )
        self._running[task_id] = RunningTask(task_id, display_label, bg_task, cancel_event)
        bg_task.add_done_callback(lambda t: self._forget(task_id, t))

        logger.info(f"Spawned subagent [{task_id}]: {display_label}")
        return f"Subagent [{display_label}] started (id: {task_id}). I'll notify you when it completes."

    def _forget(self, task_id: str, finished: asyncio.Task) -> None:
        entry = self._running.get(task_id)
        if entry is not None and entry.task is finished:
            del self._running[task_id]

    def cancel(self, task_id: str) -> bool:
        """
        请求取消子代理并立即从任务表移除。

        子代理在下一次模型调用或工具调用前停止；正在运行的 exec 子进程会被 kill，
        其他工具照常执行完。被取消的子代理不会回报结果。
        """
        entry = self._running.pop(task_id, None)
        if entry is None:
            return False
        entry.cancel_event.set()
        logger.info(f"Cancelled subagent [{task_id}]: {entry.label}")
        return True

    def get_running_count(self) -> int:
        return len(self._running)

    def get_running_ids(self) -> list[str]:
        return list(self._running)

    def _build_tools(self) -> ToolRegistry:
        tools = ToolRegistry()
        allowed_dir = self.workspace if self.restrict_to_workspace else None
        for tool_cls in (ReadFileTool, WriteFileTool, EditFileTool, ListDirTool):
            tools.register(tool_cls(allowed_dir=allowed_dir, base_dir=self.workspace))
        tools.register(ExecTool(
            working_dir=str(self.workspace),
            timeout=self.exec_config.timeout,
            restrict_to_workspace=self.restrict_to_workspace,
        ))
        tools.register(WebSearchTool(api_key=self.brave_api_key))
        tools.register(WebFetchTool())
        return tools

    async def _run_subagent(
        self,
        task_id: str,
        task: str,
        label: str,
        origin_channel: str,
        origin_chat_id: str,
        cancel_event: asyncio.Event,
    ) -> None:
        logger.info(f"Subagent [{task_id}] starting task: {label}")

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self._build_subagent_prompt()},
            {"role": "user", "content": task},
        ]
        try:
            result = await run_tool_loop(
                self.provider,
                self._build_tools(),
                messages,
                model=self.model,
                max_iterations=self.max_iterations,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                cancel_event=cancel_event,
                log_prefix=f"Subagent [{task_id}] ",
            )
        except LoopCancelledError:
            logger.info(f"Subagent [{task_id}] stopped after cancellation")
            return
        except Exception as e:
            logger.error(f"Subagent [{task_id}] failed: {e}")
            status, text = "error", f"Error: {str(e)}"
        else:
            logger.info(f"Subagent [{task_id}] completed after {result.iterations} iteration(s)")
            status = "ok"
            text = result.final_content or "Task completed but no final response was generated."

        if cancel_event.is_set():
            logger.info(f"Subagent [{task_id}] finished after cancellation, result discarded")
            return
        await self._announce_result(task_id, label, task, text, origin_channel, origin_chat_id, status)

    async def _announce_result(
        self,
        task_id: str,
        label: str,
        task: str,
        result: str,
        origin_channel: str,
        origin_chat_id: str,
        status: str,
    ) -> None:
        status_text = "completed successfully" if status == "ok" else "failed"
        content = f"""[Subagent '{label}' {status_text}]

Task: {task}

Result:
{result}

Summarize this naturally for the user. Keep it brief (1-2 sentences). Do not mention technical details like "subagent" or task IDs."""

        origin = create_session_key(origin_channel, origin_chat_id)
        await self.bus.publish_inbound(InboundMessage(
            channel=SYSTEM_CHANNEL,
            sender_id="subagent",
            chat_id=origin,
            content=content,
        ))
        logger.debug(f"Subagent [{task_id}] announced result to {origin}")

    def _build_subagent_prompt(self) -> str:
        now = datetime.now().strftime("%Y-%m-%d %H:%M (%A)")
        tz = time.strftime("%Z") or "UTC"

        return f"""# Subagent

## Current Time
{now} ({tz})

You are a subagent spawned by the main agent to complete a specific task.

## Rules
1. Stay focused - complete only the assigned task, nothing else
2. Your final response will be reported back to the main agent
3. Do not initiate conversations or take on side tasks
4. Be concise but informative in your findings

## What You Can Do
- Read and write files in the workspace
- Execute shell commands
- Search the web and fetch web pages
- Complete the task thoroughly

## What You Cannot Do
- Send messages directly to users (no message tool available)
- Spawn other subagents
- Access the main agent's conversation history

## Workspace
Your workspace is at: {self.workspace}

When you have completed the task, provide a clear summary of your findings or actions."""
