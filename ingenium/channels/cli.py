"""
终端渠道。

交互模式下由 ChannelManager 启动：用 prompt_toolkit 读取用户输入并发布到总线，
Agent 的回复（包括子代理完成后的转述）通过出站分发回到 send()，用 rich 打印。
"""

from pathlib import Path
from typing import Any, Awaitable, Callable

from loguru import logger
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text

from ingenium import __logo__
from ingenium.bus.events import OutboundMessage
from ingenium.bus.queue import MessageBus
from ingenium.channels.base import BaseChannel
from ingenium.utils.helpers import ensure_dir, get_data_path

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}

InputReader = Callable[[], Awaitable[str]]


class CLIChannel(BaseChannel):
    """
    终端上的单用户渠道，sender_id 固定为 "user"，chat_id 默认为 "direct"。

    参数:
        config: CLIChannelConfig
        bus: 消息总线
        chat_id: 会话所用的聊天 ID，会话键即 "cli:<chat_id>"
        render_markdown: 回复按 Markdown 渲染还是按纯文本打印
        console: rich 控制台；缺省新建
        reader: 读取一行输入的协程函数；缺省使用带历史记录的 prompt_toolkit 会话
    """

    name = "cli"

    def __init__(
        self,
        config: Any,
        bus: MessageBus,
        chat_id: str = "direct",
        render_markdown: bool = True,
        console: Console | None = None,
        reader: InputReader | None = None,
    ):
        super().__init__(config, bus)
        self.chat_id = chat_id
        self.render_markdown = render_markdown
        self.console = console or Console()
        self._reader = reader
        self._prompt_session: PromptSession | None = None

    async def start(self) -> None:
        """逐行读取输入直到遇到退出命令、EOF 或 Ctrl+C。空行被忽略。"""
        self._running = True
        logger.info("CLI channel started")

        while self._running:
            try:
                line = await self._read_line()
            except (EOFError, KeyboardInterrupt):
                break

            text = line.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                break

            await self._handle_message(sender_id="user", chat_id=self.chat_id, content=text)

        self._running = False
        self.console.print("\nGoodbye!")
        logger.info("CLI channel stopped")

    async def stop(self) -> None:
        self._running = False

    async def send(self, msg: OutboundMessage) -> None:
        content = msg.content or ""
        body = Markdown(content) if self.render_markdown else Text(content)
        self.console.print()
        self.console.print(f"[cyan]{__logo__} ingenium[/cyan]")
        self.console.print(body)
        self.console.print()

    async def _read_line(self) -> str:
        if self._reader is not None:
            return await self._reader()

        if self._prompt_session is None:
            self._prompt_session = PromptSession(
                history=FileHistory(str(self._history_file())),
                enable_open_in_editor=False,
                multiline=False,
            )
        with patch_stdout():
            return await self._prompt_session.prompt_async(HTML("<b fg='ansiblue'>You:</b> "))

    @staticmethod
    def _history_file() -> Path:
        return ensure_dir(get_data_path() / "history") / "cli_history"
