"""message 工具：让模型在工具调用循环中途主动给用户发消息。"""

from typing import Any, Awaitable, Callable

from ingenium.agent.tools.base import ContextualTool
from ingenium.bus.events import OutboundMessage


class MessageTool(ContextualTool):
    """
    通过 send_callback（通常是 bus.publish_outbound）投递 OutboundMessage。

    目标默认取当前路由上下文，AgentLoop 在处理每条消息前调用 set_context() 更新；
    模型也可以显式指定 channel / chat_id。
    """

    def __init__(
        self,
        send_callback: Callable[[OutboundMessage], Awaitable[None]] | None = None,
        default_channel: str = "",
        default_chat_id: str = "",
    ):
        super().__init__(default_channel, default_chat_id)
        self._send_callback = send_callback

    def set_send_callback(self, callback: Callable[[OutboundMessage], Awaitable[None]]) -> None:
        self._send_callback = callback

    @property
    def name(self) -> str:
        return "message"

    @property
    def description(self) -> str:
        return "Send a message to the user. Use this when you want to communicate something."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The message content to send"},
                "channel": {"type": "string", "description": "Optional: target channel (cli, etc.)"},
                "chat_id": {"type": "string", "description": "Optional: target chat/user ID"},
            },
            "required": ["content"],
        }

    async def execute(
        self,
        content: str,
        channel: str | None = None,
        chat_id: str | None = None,
        **kwargs: Any,
    ) -> str:
        default_channel, default_chat_id = self.current_context
        channel = channel or default_channel
        chat_id = chat_id or default_chat_id
        if not channel or not chat_id:
            return "Error: No target channel/chat specified"
        if not self._send_callback:
            return "Error: Message sending not configured"

        try:
            await self._send_callback(OutboundMessage(channel=channel, chat_id=chat_id, content=content))
        except Exception as e:
            return f"Error sending message: {str(e)}"
        return f"Message sent to {channel}:{chat_id}"
