"""
Unit tests for Debouncer.
"""

import asyncio

import pytest

from tripcache.services.debouncer import Debouncer


class TestDebouncer:
    """Test Debouncer."""

    @pytest.mark.asyncio
    async def test_burst_runs_only_last_operation(self):
        debouncer = Debouncer()
        executed: list[int] = []

        def make(i):
            async def operation():
                executed.append(i)
                return f"query-{i}"

            return operation

        callers = []
        for i in range(5):
            callers.append(
                asyncio.create_task(debouncer.debounce("search", make(i), quiet_period=0.05))
            )
            await asyncio.sleep(0.01)

        results = await asyncio.gather(*callers)

        assert executed == [4]
        assert results == ["query-4"] * 5
        stats = debouncer.get_stats()
        assert stats.triggers == 5
        assert stats.superseded == 4
        assert stats.executed == 1
        assert debouncer.pending_count() == 0

    @pytest.mark.asyncio
    async def test_error_reaches_every_caller(self):
        debouncer = Debouncer()

        async def failing():
            raise RuntimeError("search failed")

        callers = [
            asyncio.create_task(debouncer.debounce("search", failing, quiet_period=0.01))
            for _ in range(3)
        ]
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert debouncer.get_stats().executed == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        debouncer = Debouncer(default_quiet_period=0.01)

        async def a():
            return "a"

        async def b():
            return "b"

        assert await asyncio.gather(debouncer.debounce("a", a), debouncer.debounce("b", b)) == [
            "a",
            "b",
        ]
        assert debouncer.get_stats().executed == 2

    @pytest.mark.asyncio
    async def test_new_call_pushes_deadline_back(self):
        debouncer = Debouncer()

        async def operation():
            return None

        first = asyncio.create_task(debouncer.debounce("k", operation, quiet_period=0.2))
        await asyncio.sleep(0)
        deadline = debouncer.get_deadline("k")

        await asyncio.sleep(0.01)
        second = asyncio.create_task(debouncer.debounce("k", operation, quiet_period=0.2))
        await asyncio.sleep(0)

        assert debouncer.get_deadline("k") > deadline
        await asyncio.gather(first, second)
        assert debouncer.get_deadline("k") is None

    @pytest.mark.asyncio
    async def test_cancel_drops_scheduled_operation(self):
        debouncer = Debouncer()
        executed = False

        async def operation():
            nonlocal executed
            executed = True

        caller = asyncio.create_task(debouncer.debounce("k", operation, quiet_period=0.05))
        await asyncio.sleep(0)

        assert debouncer.cancel("k") is True
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)
        assert executed is False
        assert debouncer.cancel("k") is False
