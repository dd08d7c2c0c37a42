"""Tests for the per-repository read/write operation queue."""

import asyncio

import pytest

from gitstate.repository.serializer import OperationSerializer


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_readers_run_concurrently():
    serializer = OperationSerializer("test")
    inside = 0
    peak = 0

    async def reader():
        nonlocal inside, peak
        async with serializer.read():
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*(reader() for _ in range(4)))
    assert peak == 4


@pytest.mark.asyncio
async def test_writers_never_overlap():
    serializer = OperationSerializer("test")
    intervals = []
    loop = asyncio.get_running_loop()

    async def writer():
        async with serializer.write():
            start = loop.time()
            await asyncio.sleep(0.01)
            intervals.append((start, loop.time()))

    async def reader():
        async with serializer.read():
            assert not serializer.writer_active
            await asyncio.sleep(0.005)

    await asyncio.gather(writer(), reader(), writer(), reader(), writer())
    intervals.sort()
    for (_, end), (start, _) in zip(intervals, intervals[1:]):
        assert start >= end


@pytest.mark.asyncio
async def test_queued_writer_blocks_new_readers():
    serializer = OperationSerializer("test")
    order = []
    release_first = asyncio.Event()

    async def first_reader():
        async with serializer.read():
            order.append("r1-start")
            await release_first.wait()
            order.append("r1-end")

    async def writer():
        async with serializer.write():
            order.append("w")

    async def late_reader():
        async with serializer.read():
            order.append("r2")

    tasks = [asyncio.create_task(first_reader())]
    await _settle()
    tasks.append(asyncio.create_task(writer()))
    await _settle()
    tasks.append(asyncio.create_task(late_reader()))
    await _settle()
    assert order == ["r1-start"]

    release_first.set()
    await asyncio.gather(*tasks)
    assert order == ["r1-start", "r1-end", "w", "r2"]


@pytest.mark.asyncio
async def test_cancelled_waiter_releases_its_place():
    serializer = OperationSerializer("test")
    hold = asyncio.Event()

    async def holder():
        async with serializer.read():
            await hold.wait()

    async def writer():
        async with serializer.write():
            pass

    holding = asyncio.create_task(holder())
    await _settle()
    waiting = asyncio.create_task(writer())
    await _settle()
    assert serializer.pending == 1

    waiting.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiting
    assert serializer.pending == 0

    # a new reader is not stuck behind the cancelled writer
    async with serializer.read():
        assert serializer.active_readers == 2
    hold.set()
    await holding


@pytest.mark.asyncio
async def test_cancelled_holder_releases_lock():
    serializer = OperationSerializer("test")

    async def stuck_writer():
        async with serializer.write():
            await asyncio.sleep(10)

    task = asyncio.create_task(stuck_writer())
    await _settle()
    assert serializer.writer_active
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not serializer.writer_active

    async with serializer.write():
        assert serializer.writer_active
