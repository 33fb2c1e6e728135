"""
渠道基类。

具体渠道继承 BaseChannel，实现 start / stop / send 三个抽象方法；
收到平台消息后调用 _handle_message()，由基类完成白名单检查并发布到总线。
"""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from ingenium.bus.events import InboundMessage, OutboundMessage
from ingenium.bus.queue import MessageBus


class BaseChannel(ABC):
    """
    消息渠道抽象基类。

    属性:
        name: 渠道名，出站消息按此字段路由
        config: 渠道配置（至少带 allow_from 白名单）
        bus: 共享的消息总线
        _running: 运行标志
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        self.config = config
        self.bus = bus
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """开始监听消息。通常是长期运行的协程，直到 stop() 才返回。"""
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """把一条出站消息投递到平台，由总线的出站分发循环调用。"""
        pass

    def is_allowed(self, sender_id: str) -> bool:
        """
        白名单检查。

        allow_from 为空时允许所有人；"id|username" 形式的复合 ID
        只要任一段在名单中即放行。
        """
        allow_list = getattr(self.config, "allow_from", [])
        if not allow_list:
            return True

        sender_str = str(sender_id)
        if sender_str in allow_list:
            return True
        if "|" in sender_str:
            for part in sender_str.split("|"):
                if part and part in allow_list:
                    return True
        return False

    async def _handle_message(
        self,
        sender_id: str,
        chat_id: str,
        content: str,
        media: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """白名单检查通过后构造 InboundMessage 并发布；被拒绝的消息只记警告。"""
        if not self.is_allowed(sender_id):
            logger.warning(
                f"Access denied for sender {sender_id} on channel {self.name}. "
                f"Add them to allowFrom list in config to grant access."
            )
            return

        msg = InboundMessage(
            channel=self.name,
            sender_id=str(sender_id),
            chat_id=str(chat_id),
            content=content,
            media=media or [],
            metadata=metadata or {},
        )
        await self.bus.publish_inbound(msg)

    @property
    def is_running(self) -> bool:
        return self._running
