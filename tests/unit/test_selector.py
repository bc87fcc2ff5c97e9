"""
Unit tests for the storage selector state machine.

Transitions are driven with FakeProber / FakeDurableAdapter; no database.
"""

import asyncio
import logging

import pytest

from forexhub.storage.errors import StoreUnavailableError
from forexhub.storage.memory_adapter import MemoryStoreAdapter
from forexhub.storage.selector import StorageMode, StorageSelector
from tests.factories import FakeDurableAdapter, FakeProber


class TestStartup:
    """Initial reconcile at process start."""

    def test_starts_volatile_before_first_reconcile(self, selector):
        assert selector.mode is StorageMode.VOLATILE
        assert selector.get_active_adapter() is selector.volatile
        assert selector.status().can_persist is False

    @pytest.mark.asyncio
    async def test_start_switches_to_durable_when_reachable(self, selector, durable):
        mode = await selector.start()

        assert mode is StorageMode.DURABLE
        assert selector.get_active_adapter() is durable
        assert durable.initialize_calls == 1
        assert selector.transitions == 1

    @pytest.mark.asyncio
    async def test_start_stays_volatile_when_unreachable(self, selector, prober, durable):
        prober.reachable = False

        mode = await selector.start()

        assert mode is StorageMode.VOLATILE
        assert durable.initialize_calls == 0
        assert selector.last_error == "OperationalError: connection refused"

    @pytest.mark.asyncio
    async def test_without_durable_adapter_stays_volatile(self, prober):
        selector = StorageSelector(volatile=MemoryStoreAdapter(), prober=prober)

        assert await selector.start() is StorageMode.VOLATILE
        assert selector.status().durable_configured is False


class TestTransitions:
    """Switching between durable and volatile."""

    @pytest.mark.asyncio
    async def test_durable_to_volatile_on_probe_failure(self, selector, prober, caplog):
        await selector.start()
        prober.reachable = False

        with caplog.at_level(logging.WARNING, logger="forexhub.storage.selector"):
            mode = await selector.reconcile()

        assert mode is StorageMode.VOLATILE
        assert selector.get_active_adapter() is selector.volatile
        assert selector.transitions == 2
        assert any(getattr(r, "event", None) == "storage_mode_changed" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_volatile_to_durable_on_recovery(self, selector, prober, durable):
        prober.reachable = False
        await selector.start()

        prober.reachable = True
        mode = await selector.reconcile()

        assert mode is StorageMode.DURABLE
        assert selector.get_active_adapter() is durable
        assert selector.last_error is None

    @pytest.mark.asyncio
    async def test_failed_initialization_aborts_switch(self, prober, caplog):
        durable = FakeDurableAdapter(fail_init=True)
        selector = StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=durable)

        with caplog.at_level(logging.ERROR, logger="forexhub.storage.selector"):
            mode = await selector.reconcile()

        assert mode is StorageMode.VOLATILE
        assert selector.get_active_adapter() is selector.volatile
        assert selector.initialization_attempts == 1
        assert selector.transitions == 0
        assert "does not exist" in selector.last_error
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    @pytest.mark.asyncio
    async def test_initialization_retried_on_next_reconcile(self, prober):
        durable = FakeDurableAdapter(fail_init=True)
        selector = StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=durable)
        await selector.reconcile()

        durable.fail_init = False
        assert await selector.reconcile() is StorageMode.DURABLE
        assert selector.initialization_attempts == 2

    @pytest.mark.asyncio
    async def test_no_change_when_state_matches(self, selector, durable):
        await selector.start()
        await selector.reconcile()
        await selector.reconcile()

        assert selector.transitions == 1
        # already durable: no re-initialization
        assert durable.initialize_calls == 1

    @pytest.mark.asyncio
    async def test_status_snapshot(self, selector, prober):
        await selector.start()

        status = selector.status()

        assert status.connected is True
        assert status.storage_type == "durable"
        assert status.can_persist is True
        assert status.last_check == prober.last_check
        assert status.durable_configured is True


class TestSingleFlight:
    """Concurrent reconciles share one probe."""

    @pytest.mark.asyncio
    async def test_concurrent_reconciles_share_one_probe(self, durable):
        prober = FakeProber(reachable=True, delay=0.05)
        selector = StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=durable)

        modes = await asyncio.gather(*(selector.reconcile() for _ in range(5)))

        assert set(modes) == {StorageMode.DURABLE}
        assert prober.calls == 1
        assert durable.initialize_calls == 1

    @pytest.mark.asyncio
    async def test_later_reconcile_probes_again(self, selector, prober):
        await selector.reconcile()
        await selector.reconcile()
        assert prober.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_reconcile(self, durable):
        prober = FakeProber(reachable=True, delay=0.05)
        selector = StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=durable)

        waiter = asyncio.ensure_future(selector.reconcile())
        await asyncio.sleep(0)
        waiter.cancel()

        assert await selector.reconcile() is StorageMode.DURABLE
        assert prober.calls == 1


class TestUnavailableSignal:
    """Durable failures reported by request handlers."""

    @pytest.mark.asyncio
    async def test_note_unavailable_marks_stale(self, selector):
        await selector.start()

        selector.note_unavailable(StoreUnavailableError("connection reset"))

        assert selector.is_stale is True
        assert "connection reset" in selector.last_error
        # the signal alone never switches adapters
        assert selector.mode is StorageMode.DURABLE

    @pytest.mark.asyncio
    async def test_note_unavailable_ignored_while_volatile(self, selector, prober):
        prober.reachable = False
        await selector.start()

        selector.note_unavailable(StoreUnavailableError("late failure"))

        assert selector.is_stale is False

    @pytest.mark.asyncio
    async def test_reconcile_clears_stale(self, selector, prober):
        await selector.start()
        selector.note_unavailable(StoreUnavailableError("connection reset"))
        prober.reachable = False

        await selector.reconcile()

        assert selector.is_stale is False
        assert selector.mode is StorageMode.VOLATILE


class TestClose:
    @pytest.mark.asyncio
    async def test_close_releases_everything(self, selector, prober, durable):
        await selector.start()
        await selector.close()

        assert durable.closed is True
        assert prober.closed is True
