"""Tests for per-property locking."""

import asyncio

import pytest

from plan_analysis.errors import ConflictError
from plan_analysis.locks import PropertyLockRegistry


class TestPropertyLockRegistry:
    async def test_serializes_same_property(self) -> None:
        locks = PropertyLockRegistry(timeout=5)
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("42"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    async def test_different_properties_do_not_block(self) -> None:
        locks = PropertyLockRegistry(timeout=0.1)
        async with locks.hold("1"):
            async with locks.hold("2"):
                assert locks.is_locked("1")
                assert locks.is_locked("2")

    async def test_timeout_raises_conflict(self) -> None:
        locks = PropertyLockRegistry(timeout=0.05)
        async with locks.hold("42"):
            with pytest.raises(ConflictError) as exc_info:
                async with locks.hold("42"):
                    pass
        assert exc_info.value.status_code == 409

    async def test_released_after_exception(self) -> None:
        locks = PropertyLockRegistry(timeout=0.1)
        with pytest.raises(RuntimeError):
            async with locks.hold("42"):
                raise RuntimeError("boom")
        assert not locks.is_locked("42")
        async with locks.hold("42"):
            pass

    async def test_idle_locks_dropped(self) -> None:
        locks = PropertyLockRegistry()
        async with locks.hold("42"):
            pass
        assert locks._locks == {}
        assert locks._waiters == {}

    async def test_lock_kept_while_waiter_remains(self) -> None:
        locks = PropertyLockRegistry(timeout=1)
        release = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("42"):
                await release.wait()

        async def waiter() -> None:
            async with locks.hold("42"):
                pass

        first = asyncio.create_task(holder())
        await asyncio.sleep(0)
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        assert locks._waiters["42"] == 2
        release.set()
        await asyncio.gather(first, second)
        assert "42" not in locks._locks

    async def test_timed_out_waiter_leaves_lock_free(self) -> None:
        locks = PropertyLockRegistry(timeout=0.05)
        release = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("42"):
                await release.wait()

        first = asyncio.create_task(holder())
        await asyncio.sleep(0)
        with pytest.raises(ConflictError):
            async with locks.hold("42"):
                pass
        release.set()
        await first

        assert not locks.is_locked("42")
        assert locks._locks == {}
        async with locks.hold("42"):
            assert locks.is_locked("42")

    async def test_cancelled_waiter_leaves_lock_free(self) -> None:
        locks = PropertyLockRegistry(timeout=5)
        release = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("42"):
                await release.wait()

        async def waiter() -> None:
            async with locks.hold("42"):
                pass

        first = asyncio.create_task(holder())
        await asyncio.sleep(0)
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        second.cancel()
        release.set()
        await first
        with pytest.raises(asyncio.CancelledError):
            await second

        assert not locks.is_locked("42")
        assert locks._waiters == {}
