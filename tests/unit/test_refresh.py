"""
Unit tests for the request refresh hook and the background reconciler.
"""

import asyncio

import pytest

from forexhub.storage.errors import StoreUnavailableError
from forexhub.storage.reconciler import BackgroundReconciler
from forexhub.storage.refresh import StorageRefreshHook
from forexhub.storage.selector import StorageMode


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestStorageRefreshHook:
    """Best-effort reconcile before each request."""

    @pytest.mark.asyncio
    async def test_first_call_reconciles(self, selector, prober):
        hook = StorageRefreshHook(selector, min_interval_seconds=5.0, clock=FakeClock())

        assert await hook() is True
        assert prober.calls == 1
        assert selector.mode is StorageMode.DURABLE

    @pytest.mark.asyncio
    async def test_rate_limited_within_interval(self, selector, prober):
        clock = FakeClock()
        hook = StorageRefreshHook(selector, min_interval_seconds=5.0, clock=clock)
        await hook()

        clock.now += 4.9
        assert await hook() is False
        clock.now += 0.1
        assert await hook() is True
        assert prober.calls == 2

    @pytest.mark.asyncio
    async def test_zero_interval_reconciles_every_request(self, selector, prober):
        hook = StorageRefreshHook(selector, min_interval_seconds=0, clock=FakeClock())

        for _ in range(3):
            await hook()

        assert prober.calls == 3

    @pytest.mark.asyncio
    async def test_stale_selector_bypasses_rate_limit(self, selector, prober):
        clock = FakeClock()
        hook = StorageRefreshHook(selector, min_interval_seconds=60.0, clock=clock)
        await hook()
        selector.note_unavailable(StoreUnavailableError("connection reset"))
        prober.reachable = False

        assert await hook() is True
        assert selector.mode is StorageMode.VOLATILE

    @pytest.mark.asyncio
    async def test_reconcile_errors_are_swallowed(self, selector, monkeypatch):
        async def broken():
            raise RuntimeError("probe exploded")

        monkeypatch.setattr(selector, "reconcile", broken)
        hook = StorageRefreshHook(selector, clock=FakeClock())

        assert await hook() is True
        assert hook.runs == 1
        assert selector.mode is StorageMode.VOLATILE


class TestBackgroundReconciler:
    """Timer that recovers from volatile mode without traffic."""

    @pytest.mark.asyncio
    async def test_tick_skips_while_durable(self, selector, prober):
        await selector.start()
        reconciler = BackgroundReconciler(selector, interval_seconds=30)

        assert await reconciler.tick() is False
        assert prober.calls == 1

    @pytest.mark.asyncio
    async def test_tick_recovers_from_volatile(self, selector, prober, durable):
        prober.reachable = False
        await selector.start()
        prober.reachable = True
        reconciler = BackgroundReconciler(selector, interval_seconds=30)

        assert await reconciler.tick() is True
        assert selector.get_active_adapter() is durable

    @pytest.mark.asyncio
    async def test_loop_runs_and_stops(self, selector, prober):
        prober.reachable = False
        reconciler = BackgroundReconciler(selector, interval_seconds=0.01)

        reconciler.start()
        assert reconciler.is_running
        await asyncio.sleep(0.05)
        await reconciler.stop()

        assert reconciler.ticks >= 1
        assert reconciler.is_running is False

    @pytest.mark.asyncio
    async def test_loop_survives_tick_errors(self, selector, monkeypatch):
        calls = []

        async def broken():
            calls.append(1)
            raise RuntimeError("boom")

        monkeypatch.setattr(selector, "reconcile", broken)
        reconciler = BackgroundReconciler(selector, interval_seconds=0.01)

        reconciler.start()
        await asyncio.sleep(0.05)
        await reconciler.stop()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, selector):
        await BackgroundReconciler(selector).stop()
