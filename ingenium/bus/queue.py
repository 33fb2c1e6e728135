"""
消息总线实现。

MessageBus 内部持有两条无界 AsyncQueue：

入站：渠道 / 子代理 → publish_inbound() → inbound → consume_inbound() → AgentLoop
出站：AgentLoop → publish_outbound() → outbound → dispatch_outbound() → 渠道回调

出站采用"发布-订阅"：渠道通过 subscribe_outbound() 注册回调，
dispatch_outbound() 常驻任务按消息的 channel 字段把消息交给对应回调。
同一渠道的消息由单一消费者按到达顺序分发，因此渠道内顺序保持不变；
不同渠道之间不保证顺序。
"""

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from ingenium.bus.events import InboundMessage, OutboundMessage
from ingenium.utils.async_queue import AsyncQueue, OperationTimeoutError, with_timeout

OutboundCallback = Callable[[OutboundMessage], Awaitable[None]]


class MessageBus:
    """
    异步消息总线。

    属性:
        inbound: 入站消息队列（渠道 → Agent）
        outbound: 出站消息队列（Agent → 渠道）
        poll_interval: dispatch_outbound 单次等待的超时秒数，也是 stop() 的最大响应延迟
        _outbound_subscribers: {渠道名: [回调, ...]}，按注册顺序调用
        _running: 分发循环运行标志
    """

    def __init__(self, poll_interval: float = 1.0):
        self.inbound: AsyncQueue[InboundMessage] = AsyncQueue()
        self.outbound: AsyncQueue[OutboundMessage] = AsyncQueue()
        self.poll_interval = poll_interval
        self._outbound_subscribers: dict[str, list[OutboundCallback]] = {}
        self._running = False

    async def publish_inbound(self, msg: InboundMessage) -> None:
        """渠道收到用户消息（或子代理完成任务）后调用，放入入站队列。"""
        await self.inbound.put(msg)

    async def consume_inbound(self) -> InboundMessage:
        """取下一条入站消息，队列为空时挂起。"""
        return await self.inbound.get()

    async def publish_outbound(self, msg: OutboundMessage) -> None:
        await self.outbound.put(msg)

    async def consume_outbound(self) -> OutboundMessage:
        """
        取下一条出站消息。

        正常运行时由 dispatch_outbound() 消费，
        仅在需要手动接管出站处理（如测试）时直接调用。
        """
        return await self.outbound.get()

    def subscribe_outbound(self, channel: str, callback: OutboundCallback) -> None:
        """
        订阅某个渠道的出站消息。同一渠道可以注册多个回调。

        参数:
            channel: 渠道名（如 'cli'）
            callback: 异步回调，接收 OutboundMessage
        """
        self._outbound_subscribers.setdefault(channel, []).append(callback)

    def unsubscribe_outbound(self, channel: str, callback: OutboundCallback) -> None:
        """取消订阅。回调不存在时静默忽略。"""
        subscribers = self._outbound_subscribers.get(channel)
        if not subscribers:
            return
        try:
            subscribers.remove(callback)
        except ValueError:
            return
        if not subscribers:
            del self._outbound_subscribers[channel]

    async def dispatch_outbound(self) -> None:
        """
        出站分发循环（常驻后台任务）。

        每轮最多等待 poll_interval 秒，超时后重新检查 _running，
        因此 stop() 之后最多一个间隔就会返回；正在执行的回调不会被打断。
        单个回调抛出的异常只记日志，不影响其余回调和后续消息。
        """
        self._running = True
        await self._dispatch_loop()

    def start_dispatch(self) -> asyncio.Task:
        """
        以后台任务启动分发循环。

        运行标志在创建任务时就已置位，任务第一次被调度之前调用的 stop() 同样生效。
        """
        self._running = True
        return asyncio.create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        logger.info("Outbound dispatcher started")
        while self._running:
            try:
                msg = await with_timeout(self.outbound.get(), self.poll_interval)
            except OperationTimeoutError:
                continue

            subscribers = list(self._outbound_subscribers.get(msg.channel, []))
            if not subscribers:
                logger.warning(f"No subscribers for outbound channel: {msg.channel}")
            for callback in subscribers:
                try:
                    await callback(msg)
                except Exception as e:
                    logger.error(f"Error dispatching to {msg.channel}: {e}")
        logger.info("Outbound dispatcher stopped")

    def stop(self) -> None:
        """请求分发循环在下一次超时检查时退出。"""
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def inbound_size(self) -> int:
        """待处理的入站消息数。"""
        return self.inbound.size

    @property
    def outbound_size(self) -> int:
        """待分发的出站消息数。"""
        return self.outbound.size

    def subscriber_count(self, channel: str) -> int:
        return len(self._outbound_subscribers.get(channel, []))
