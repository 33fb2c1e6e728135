"""
消息总线 - 渠道与 Agent 内核之间的解耦层。

消息流向：
  渠道 → InboundMessage → 总线 inbound 队列 → AgentLoop
  AgentLoop → OutboundMessage → 总线 outbound 队列 → 订阅该渠道的回调

子代理完成任务后也通过 inbound 队列回报（channel="system"），
因此主循环只需要消费一条队列就能同时处理用户消息和后台任务结果。
"""

from ingenium.bus.events import InboundMessage, OutboundMessage
from ingenium.bus.queue import MessageBus

__all__ = ["MessageBus", "InboundMessage", "OutboundMessage"]
