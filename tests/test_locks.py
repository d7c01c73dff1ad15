"""Tests for per-record asyncio locks."""

import asyncio

import pytest

from databank.locks import KeyedLocks


class TestKeyedLocks:
    """Same-key holders take turns; different keys do not wait."""

    @pytest.mark.asyncio
    async def test_same_key_serialized(self):
        locks = KeyedLocks()
        events = []

        async def worker(name):
            async with locks.hold("k"):
                events.append(f"{name} in")
                await asyncio.sleep(0.01)
                events.append(f"{name} out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a in", "a out", "b in", "b out"]

    @pytest.mark.asyncio
    async def test_different_keys_concurrent(self):
        locks = KeyedLocks()
        inside = asyncio.Event()

        async def first():
            async with locks.hold("a"):
                await inside.wait()

        async def second():
            async with locks.hold("b"):
                inside.set()

        await asyncio.wait_for(asyncio.gather(first(), second()), timeout=1)

    @pytest.mark.asyncio
    async def test_locked(self):
        locks = KeyedLocks()

        async with locks.hold(("user", "evan")):
            assert locks.locked(("user", "evan"))
            assert not locks.locked(("user", "ada"))
            assert len(locks) == 1

        assert not locks.locked(("user", "evan"))

    @pytest.mark.asyncio
    async def test_released_after_use(self):
        locks = KeyedLocks()

        async with locks.hold("k"):
            pass

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        locks = KeyedLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")

        assert len(locks) == 0
        async with locks.hold("k"):
            assert locks.locked("k")

    @pytest.mark.asyncio
    async def test_waiters_keep_lock_alive(self):
        locks = KeyedLocks()
        release = asyncio.Event()

        async def holder():
            async with locks.hold("k"):
                await release.wait()

        async def waiter():
            async with locks.hold("k"):
                pass

        tasks = [asyncio.create_task(holder()), asyncio.create_task(waiter())]
        await asyncio.sleep(0)
        assert len(locks) == 1

        release.set()
        await asyncio.gather(*tasks)
        assert len(locks) == 0
