import asyncio

import pytest

from ingenium.utils.async_queue import AsyncQueue, BoundedQueue, OperationTimeoutError, with_timeout


async def test_fifo_order():
    q: AsyncQueue[int] = AsyncQueue()
    for i in range(5):
        await q.put(i)
    assert [await q.get() for _ in range(5)] == [0, 1, 2, 3, 4]
    assert q.empty()


async def test_get_suspends_until_put():
    q: AsyncQueue[str] = AsyncQueue()
    getter = asyncio.create_task(q.get())
    await asyncio.sleep(0)
    assert not getter.done()
    assert q.waiting_consumers == 1

    await q.put("hello")
    assert await getter == "hello"
    assert q.waiting_consumers == 0


async def test_waiting_consumers_served_in_arrival_order():
    q: AsyncQueue[int] = AsyncQueue()
    first = asyncio.create_task(q.get())
    await asyncio.sleep(0)
    second = asyncio.create_task(q.get())
    await asyncio.sleep(0)

    await q.put(1)
    await q.put(2)
    assert await first == 1
    assert await second == 2


async def test_get_nowait_on_empty_raises():
    q: AsyncQueue[None] = AsyncQueue()
    with pytest.raises(asyncio.QueueEmpty):
        q.get_nowait()
    q.put_nowait(None)
    assert q.get_nowait() is None


async def test_cancelled_getter_does_not_swallow_item():
    q: AsyncQueue[str] = AsyncQueue()
    cancelled = asyncio.create_task(q.get())
    await asyncio.sleep(0)
    survivor = asyncio.create_task(q.get())
    await asyncio.sleep(0)

    cancelled.cancel()
    await q.put("item")
    assert await survivor == "item"
    with pytest.raises(asyncio.CancelledError):
        await cancelled


async def test_timed_out_get_leaves_queue_usable():
    q: AsyncQueue[int] = AsyncQueue()
    with pytest.raises(OperationTimeoutError):
        await with_timeout(q.get(), 0.01)
    assert q.waiting_consumers == 0

    await q.put(7)
    assert await q.get() == 7


async def test_with_timeout_returns_result_and_custom_message():
    async def quick():
        return 42

    assert await with_timeout(quick(), 1.0) == 42

    with pytest.raises(OperationTimeoutError, match="too slow"):
        await with_timeout(asyncio.sleep(1), 0.01, message="too slow")


async def test_operation_timeout_is_asyncio_timeout():
    with pytest.raises(asyncio.TimeoutError):
        await with_timeout(asyncio.sleep(1), 0.01)


async def test_operation_errors_pass_through_unchanged():
    async def read_socket():
        raise TimeoutError("socket read timed out")

    with pytest.raises(TimeoutError, match="socket read timed out") as excinfo:
        await with_timeout(read_socket(), 5.0)
    assert not isinstance(excinfo.value, OperationTimeoutError)

    async def broken():
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        await with_timeout(broken(), 5.0)


async def test_nested_deadline_is_not_relabelled():
    with pytest.raises(OperationTimeoutError, match="inner"):
        await with_timeout(with_timeout(asyncio.sleep(1), 0.01, message="inner"), 5.0, message="outer")


def test_bounded_queue_rejects_non_positive_size():
    with pytest.raises(ValueError):
        BoundedQueue(0)
    with pytest.raises(ValueError):
        BoundedQueue(-3)


async def test_bounded_put_suspends_when_full():
    q: BoundedQueue[int] = BoundedQueue(1)
    await q.put(1)
    assert q.full()

    blocked = asyncio.create_task(q.put(2))
    await asyncio.sleep(0)
    assert not blocked.done()
    assert q.waiting_producers == 1

    assert await q.get() == 1
    await blocked
    assert await q.get() == 2


async def test_bounded_each_get_admits_one_producer_in_order():
    q: BoundedQueue[str] = BoundedQueue(1)
    await q.put("a")
    p1 = asyncio.create_task(q.put("b"))
    await asyncio.sleep(0)
    p2 = asyncio.create_task(q.put("c"))
    await asyncio.sleep(0)

    assert await q.get() == "a"
    await asyncio.sleep(0)
    assert p1.done()
    assert not p2.done()

    assert await q.get() == "b"
    await p2
    assert await q.get() == "c"


async def test_bounded_put_nowait_when_full():
    q: BoundedQueue[int] = BoundedQueue(2)
    q.put_nowait(1)
    q.put_nowait(2)
    with pytest.raises(asyncio.QueueFull):
        q.put_nowait(3)
    assert len(q) == 2
