"""
总线上传输的两种消息结构。

- InboundMessage：渠道（或子代理）→ Agent
- OutboundMessage：Agent → 渠道

InboundMessage 构造后不可变（frozen）；OutboundMessage 是普通 dataclass。
可变默认值一律用 field(default_factory=...)，保证 media / metadata 永远是空容器而不是 None。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ingenium.utils.helpers import create_session_key

# 子代理回报结果时使用的保留渠道名
SYSTEM_CHANNEL = "system"


@dataclass(frozen=True)
class InboundMessage:
    """
    入站消息。

    属性:
        channel: 来源渠道（如 'cli'、'telegram'；子代理回报时为 'system'）
        sender_id: 渠道内的发送者标识
        chat_id: 对话标识；系统消息中编码为 "原渠道:原聊天ID"
        content: 文本内容
        timestamp: 接收时间
        media: 附件路径列表（图片会被编码进多模态消息）
        metadata: 渠道特有的附加数据，原样回传到出站消息
    """

    channel: str
    sender_id: str
    chat_id: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    media: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def session_key(self) -> str:
        """会话键 "channel:chat_id"。"""
        return create_session_key(self.channel, self.chat_id)

    @property
    def is_system(self) -> bool:
        return self.channel == SYSTEM_CHANNEL


@dataclass
class OutboundMessage:
    """
    出站消息，只由 AgentLoop（以及 message 工具）产生。

    reply_to 缺省为 None，下游序列化时"缺省"与 None 等价。
    """

    channel: str
    chat_id: str
    content: str
    reply_to: str | None = None
    media: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
