"""
Unit tests for RequestDeduplicator.
"""

import asyncio

import pytest

from tripcache.services.deduplicator import RequestDeduplicator


class TestRequestDeduplicator:
    """Test RequestDeduplicator."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_execution(self):
        dedup = RequestDeduplicator()
        release = asyncio.Event()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            return {"place": "Lisbon"}

        waiters = [asyncio.create_task(dedup.dedupe("places:lisbon", fetch)) for _ in range(10)]
        await asyncio.sleep(0)
        assert dedup.is_in_flight("places:lisbon")

        release.set()
        results = await asyncio.gather(*waiters)

        assert calls == 1
        assert all(r is results[0] for r in results)
        stats = dedup.get_stats()
        assert stats.total == 1
        assert stats.deduplicated == 9
        assert not dedup.is_in_flight("places:lisbon")

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_key_released(self):
        dedup = RequestDeduplicator()
        release = asyncio.Event()
        error = RuntimeError("provider down")
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            raise error

        waiters = [asyncio.create_task(dedup.dedupe("k", fetch)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert calls == 1
        assert all(r is error for r in results)
        assert dedup.get_in_flight_count() == 0

        async def ok():
            return "fresh"

        assert await dedup.dedupe("k", ok) == "fresh"

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self):
        dedup = RequestDeduplicator()
        calls: list[str] = []

        def make(name):
            async def fetch():
                calls.append(name)
                await asyncio.sleep(0)
                return name

            return fetch

        results = await asyncio.gather(
            dedup.dedupe("a", make("a")), dedup.dedupe("b", make("b"))
        )

        assert sorted(results) == ["a", "b"]
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_cancelling_one_caller_keeps_shared_request(self):
        dedup = RequestDeduplicator()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return "done"

        first = asyncio.create_task(dedup.dedupe("k", fetch))
        second = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        release.set()
        assert await second == "done"

    @pytest.mark.asyncio
    async def test_cancel_key(self):
        dedup = RequestDeduplicator()

        async def fetch():
            await asyncio.sleep(10)

        waiter = asyncio.create_task(dedup.dedupe("k", fetch))
        await asyncio.sleep(0)

        assert await dedup.cancel("k") is True
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert await dedup.cancel("k") is False
        assert dedup.get_in_flight_keys() == []
