"""
异步队列原语 - 消息总线的底层并发构件。

本模块提供三样东西：
- AsyncQueue：无界 FIFO 队列，put 永不阻塞生产者，get 挂起直到有元素
- BoundedQueue：有界变体，队列满时 put 挂起，每消费一个元素只唤醒最早的一个生产者
- with_timeout()：给任意可等待对象加超时，超时抛出专用的 OperationTimeoutError

【与 asyncio.Queue 的关系】
接口刻意贴近 asyncio.Queue（get_nowait 在队列为空时抛 asyncio.QueueEmpty），
额外暴露 waiting_consumers，方便测试和背压判断。

【取消安全】
等待中的 get() 被取消（例如 with_timeout 到期）时，如果它已经被 put 唤醒，
会把唤醒机会转交给下一个等待者，保证元素不会"卡"在队列里无人领取。
"""

import asyncio
from collections import deque
from typing import Awaitable, Generic, TypeVar

T = TypeVar("T")


class OperationTimeoutError(asyncio.TimeoutError):
    """with_timeout() 到期时抛出的异常，便于与其他错误区分。"""


async def with_timeout(aw: Awaitable[T], timeout: float, message: str | None = None) -> T:
    """
    在 timeout 秒内等待 aw 完成。

    参数:
        aw: 协程或其他可等待对象
        timeout: 超时时间（秒）
        message: 可选的超时错误信息，默认 "Timeout after {timeout}s"

    返回:
        aw 的结果

    异常:
        OperationTimeoutError: 只在截止时间到达时抛出；被等待的操作会被取消，计时器随之释放。
            操作自身抛出的异常（包括它自己的 TimeoutError）原样向上传播
    """
    timer = asyncio.timeout(timeout)
    try:
        async with timer:
            return await aw
    except TimeoutError as e:
        if not timer.expired():
            raise
        raise OperationTimeoutError(message or f"Timeout after {timeout}s") from e


class AsyncQueue(Generic[T]):
    """
    无界异步 FIFO 队列。

    属性:
        _items: 已入队但未被取走的元素
        _getters: 正在等待元素的消费者 future（按到达顺序）
    """

    def __init__(self):
        self._items: deque[T] = deque()
        self._getters: deque[asyncio.Future[None]] = deque()

    @staticmethod
    def _wakeup_next(waiters: deque[asyncio.Future[None]]) -> None:
        # 跳过已取消的等待者，唤醒最早的一个
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                break

    async def put(self, item: T) -> None:
        """入队一个元素。无界队列从不挂起生产者。"""
        self.put_nowait(item)

    def put_nowait(self, item: T) -> None:
        self._items.append(item)
        self._wakeup_next(self._getters)

    async def get(self) -> T:
        """
        取出队首元素，队列为空时挂起等待。

        返回:
            最早入队的元素
        """
        while not self._items:
            getter = asyncio.get_running_loop().create_future()
            self._getters.append(getter)
            try:
                await getter
            except asyncio.CancelledError:
                getter.cancel()
                try:
                    self._getters.remove(getter)
                except ValueError:
                    pass
                # 已被唤醒但随即被取消：把这次唤醒让给下一个消费者
                if self._items and not getter.cancelled():
                    self._wakeup_next(self._getters)
                raise
        return self._items.popleft()

    def get_nowait(self) -> T:
        """
        立即取出队首元素。

        异常:
            asyncio.QueueEmpty: 队列为空（None 是合法元素，因此用异常表示"空"）
        """
        if not self._items:
            raise asyncio.QueueEmpty
        return self._items.popleft()

    def empty(self) -> bool:
        return not self._items

    @property
    def size(self) -> int:
        """队列中待取的元素个数。"""
        return len(self._items)

    @property
    def waiting_consumers(self) -> int:
        """当前挂起在 get() 上的消费者个数。"""
        return sum(1 for g in self._getters if not g.done())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={self.size} waiting={self.waiting_consumers}>"


class BoundedQueue(AsyncQueue[T]):
    """
    有界异步 FIFO 队列。

    队列满时 put() 挂起；每次成功消费一个元素，唤醒最早挂起的一个生产者
    （一进一出，生产者按到达顺序依次获得空位）。
    """

    def __init__(self, maxsize: int):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        super().__init__()
        self.maxsize = maxsize
        self._putters: deque[asyncio.Future[None]] = deque()

    def full(self) -> bool:
        return len(self._items) >= self.maxsize

    async def put(self, item: T) -> None:
        while self.full():
            putter = asyncio.get_running_loop().create_future()
            self._putters.append(putter)
            try:
                await putter
            except asyncio.CancelledError:
                putter.cancel()
                try:
                    self._putters.remove(putter)
                except ValueError:
                    pass
                if not self.full() and not putter.cancelled():
                    self._wakeup_next(self._putters)
                raise
        self.put_nowait(item)

    def put_nowait(self, item: T) -> None:
        if self.full():
            raise asyncio.QueueFull
        super().put_nowait(item)

    async def get(self) -> T:
        item = await super().get()
        self._wakeup_next(self._putters)
        return item

    def get_nowait(self) -> T:
        item = super().get_nowait()
        self._wakeup_next(self._putters)
        return item

    @property
    def waiting_producers(self) -> int:
        """当前因队列已满而挂起的生产者个数。"""
        return sum(1 for p in self._putters if not p.done())

    def __repr__(self) -> str:
        return f"<BoundedQueue size={self.size}/{self.maxsize} waiting={self.waiting_consumers}>"
