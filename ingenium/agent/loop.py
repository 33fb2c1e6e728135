"""
Agent 主循环。

入口：
    - run() / start()：常驻任务，从总线消费入站消息，处理后发布出站消息
    - process_message()：处理单条入站消息（普通消息或子代理回报的系统消息）
    - process_direct()：CLI 单次调用，直接返回回复文本

单条消息的处理：
    RESOLVE_SESSION → BUILD_CONTEXT → run_tool_loop（CALL_MODEL ⇄ EXECUTE_TOOLS）→ 保存会话 → OutboundMessage

每次处理只读取一次、保存一次会话。同一会话键上的处理由 asyncio.Lock 串行化，
不同会话键之间可以并发。
"""

import asyncio
import weakref
from pathlib import Path

from loguru import logger

from ingenium.agent.context import ContextBuilder
from ingenium.agent.runner import run_tool_loop
from ingenium.agent.subagent import SubagentManager
from ingenium.agent.tools.base import ContextualTool
from ingenium.agent.tools.filesystem import EditFileTool, ListDirTool, ReadFileTool, WriteFileTool
from ingenium.agent.tools.message import MessageTool
from ingenium.agent.tools.registry import ToolRegistry
from ingenium.agent.tools.shell import ExecTool
from ingenium.agent.tools.spawn import SpawnTool
from ingenium.agent.tools.web import WebFetchTool, WebSearchTool
from ingenium.bus.events import InboundMessage, OutboundMessage
from ingenium.bus.queue import MessageBus
from ingenium.config.schema import ExecToolConfig
from ingenium.providers.base import LLMProvider
from ingenium.session.manager import SessionManager
from ingenium.utils.async_queue import OperationTimeoutError, with_timeout
from ingenium.utils.helpers import create_session_key, parse_session_key, truncate_string

NO_RESPONSE_FALLBACK = "I've completed processing but have no response to give."
DEFAULT_ORIGIN = ("cli", "direct")


class AgentLoop:
    """
    核心处理引擎。

    属性:
        bus: 消息总线
        provider: LLM 提供者
        workspace: 工作区（引导文件、记忆、工具默认目录）
        tools: 主 Agent 的工具注册表（含 message 与 spawn）
        sessions: 会话存储
        subagents: 后台子代理管理器
    """

    def __init__(
        self,
        bus: MessageBus,
        provider: LLMProvider,
        workspace: Path,
        model: str | None = None,
        max_iterations: int = 20,
        memory_window: int = 50,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        subagent_max_iterations: int = 15,
        brave_api_key: str | None = None,
        exec_config: ExecToolConfig | None = None,
        restrict_to_workspace: bool = False,
        session_manager: SessionManager | None = None,
        poll_interval: float = 1.0,
    ):
        self.bus = bus
        self.provider = provider
        self.workspace = workspace
        self.model = model or provider.get_default_model()
        self.max_iterations = max_iterations
        self.memory_window = memory_window
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.brave_api_key = brave_api_key
        self.exec_config = exec_config or ExecToolConfig()
        self.restrict_to_workspace = restrict_to_workspace
        self.poll_interval = poll_interval

        self.context = ContextBuilder(workspace)
        self.sessions = session_manager or SessionManager()
        self.tools = ToolRegistry()
        self.subagents = SubagentManager(
            provider=provider,
            workspace=workspace,
            bus=bus,
            model=self.model,
            max_iterations=subagent_max_iterations,
            max_tokens=max_tokens,
            temperature=temperature,
            brave_api_key=brave_api_key,
            exec_config=self.exec_config,
            restrict_to_workspace=restrict_to_workspace,
        )

        self._running = False
        # 锁只被持有者和等待者引用，会话空闲后自动从表中消失
        self._session_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        allowed_dir = self.workspace if self.restrict_to_workspace else None
        for tool_cls in (ReadFileTool, WriteFileTool, EditFileTool, ListDirTool):
            self.tools.register(tool_cls(allowed_dir=allowed_dir, base_dir=self.workspace))
        self.tools.register(ExecTool(
            working_dir=str(self.workspace),
            timeout=self.exec_config.timeout,
            restrict_to_workspace=self.restrict_to_workspace,
        ))
        self.tools.register(WebSearchTool(api_key=self.brave_api_key))
        self.tools.register(WebFetchTool())
        self.tools.register(MessageTool(send_callback=self.bus.publish_outbound))
        self.tools.register(SpawnTool(manager=self.subagents))

    async def run(self) -> None:
        """
        消费入站消息直到 stop()。

        每次最多等待 poll_interval 秒，因此 stop() 在一个间隔内生效；
        正在处理的消息不会被打断。处理中逃逸的异常转换为道歉回复。
        """
        self._running = True
        await self._serve()

    def start(self) -> asyncio.Task:
        """以后台任务运行 run()；运行标志在创建任务时置位，随后的 stop() 不会丢失。"""
        self._running = True
        return asyncio.create_task(self._serve())

    async def _serve(self) -> None:
        logger.info("Agent loop started")

        while self._running:
            try:
                msg = await with_timeout(self.bus.consume_inbound(), self.poll_interval)
            except OperationTimeoutError:
                continue

            try:
                response = await self.process_message(msg)
            except Exception as e:
                logger.error(f"Error processing message: {e}")
                channel, chat_id = self._reply_target(msg)
                response = OutboundMessage(
                    channel=channel,
                    chat_id=chat_id,
                    content=f"Sorry, I encountered an error: {str(e)}",
                )
            if response:
                await self.bus.publish_outbound(response)

        logger.info("Agent loop stopped")

    def stop(self) -> None:
        self._running = False
        logger.info("Agent loop stopping")

    @property
    def is_running(self) -> bool:
        return self._running

    async def process_message(self, msg: InboundMessage, session_key: str | None = None) -> OutboundMessage | None:
        """
        处理一条入站消息。

        参数:
            msg: 入站消息；channel 为 "system" 时走子代理回报入口
            session_key: 覆盖默认的 "channel:chat_id" 会话键

        返回:
            发往原渠道（系统消息则为解码出的原始目标）的出站消息
        """
        if msg.is_system:
            return await self._process_system_message(msg)

        logger.info(f"Processing message from {msg.channel}:{msg.sender_id}: {truncate_string(msg.content, 80)}")
        key = session_key or msg.session_key
        final_content = await self._run_turn(
            session_key=key,
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=msg.content,
            media=msg.media or None,
            user_turn=msg.content,
        )
        logger.info(f"Response to {msg.channel}:{msg.sender_id}: {truncate_string(final_content, 120)}")

        return OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=final_content,
            metadata=dict(msg.metadata),
        )

    async def _process_system_message(self, msg: InboundMessage) -> OutboundMessage | None:
        """
        子代理回报：chat_id 编码了 "原渠道:原聊天"。

        转述写入原始会话，用户回合带 "[System: 发送者]" 前缀。
        """
        logger.info(f"Processing system message from {msg.sender_id}")
        origin_channel, origin_chat_id = self._reply_target(msg)

        final_content = await self._run_turn(
            session_key=create_session_key(origin_channel, origin_chat_id),
            channel=origin_channel,
            chat_id=origin_chat_id,
            content=msg.content,
            media=None,
            user_turn=f"[System: {msg.sender_id}] {msg.content}",
        )
        return OutboundMessage(channel=origin_channel, chat_id=origin_chat_id, content=final_content)

    async def _run_turn(
        self,
        session_key: str,
        channel: str,
        chat_id: str,
        content: str,
        media: list[str] | None,
        user_turn: str,
    ) -> str:
        async with self._lock_for(session_key):
            session = self.sessions.get_or_create(session_key)
            self._set_tool_context(channel, chat_id)

            messages = self.context.build_messages(
                history=session.get_history(self.memory_window),
                current_message=content,
                media=media,
                channel=channel,
                chat_id=chat_id,
            )
            result = await run_tool_loop(
                self.provider,
                self.tools,
                messages,
                model=self.model,
                max_iterations=self.max_iterations,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            if result.final_content is None and result.iterations >= self.max_iterations:
                logger.warning(f"Reached {self.max_iterations} iterations without a final answer ({session_key})")
            final_content = result.final_content or NO_RESPONSE_FALLBACK

            session.add_message("user", user_turn)
            if result.tools_used:
                session.add_message("assistant", final_content, tools_used=result.tools_used)
            else:
                session.add_message("assistant", final_content)
            self.sessions.save(session)
            return final_content

    def _lock_for(self, session_key: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_key)
        if lock is None:
            lock = self._session_locks[session_key] = asyncio.Lock()
        return lock

    def _set_tool_context(self, channel: str, chat_id: str) -> None:
        for name in ("message", "spawn"):
            tool = self.tools.get(name)
            if isinstance(tool, ContextualTool):
                tool.set_context(channel, chat_id)

    @staticmethod
    def _reply_target(msg: InboundMessage) -> tuple[str, str]:
        """普通消息回到原处；系统消息解码 chat_id，失败时回落到 cli:direct。"""
        if not msg.is_system:
            return msg.channel, msg.chat_id
        try:
            return parse_session_key(msg.chat_id)
        except ValueError:
            logger.warning(f"Cannot decode origin from system chat_id {msg.chat_id!r}, falling back to cli:direct")
            return DEFAULT_ORIGIN

    async def process_direct(
        self,
        content: str,
        session_key: str = "cli:direct",
        channel: str = "cli",
        chat_id: str = "direct",
        media: list[str] | None = None,
    ) -> str:
        """绕过总线直接处理一条消息（CLI -m 模式），返回回复文本。"""
        msg = InboundMessage(
            channel=channel,
            sender_id="user",
            chat_id=chat_id,
            content=content,
            media=media or [],
        )
        response = await self.process_message(msg, session_key=session_key)
        return response.content if response else ""
