# forexhub/storage/selector.py
"""
Storage Selector.

Owns the single active adapter and decides, one reconcile at a time,
whether it should be the durable or the volatile one.

State machine:
    VOLATILE --probe ok + durable.initialize() ok--> DURABLE
    VOLATILE --probe ok + initialize() fails-------> VOLATILE (logged, switch aborted)
    DURABLE  --probe fails-------------------------> VOLATILE (fail-open)
    otherwise no change

The active adapter and its mode live together in one frozen _ActiveSlot
that is replaced by a single attribute assignment, so readers always see a
matching (mode, adapter) pair and never a durable adapter that has not
finished initializing.

reconcile() is single-flight: concurrent callers (request hook and
background timer) share one in-flight task, so at most one durable
initialization runs at a time.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from forexhub.schemas.health import StorageStatus
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import InitializationError
from forexhub.storage.prober import ConnectivityProber

logger = logging.getLogger(__name__)


class StorageMode(str, Enum):
    DURABLE = "durable"
    VOLATILE = "volatile"


@dataclass(frozen=True)
class _ActiveSlot:
    mode: StorageMode
    adapter: StorageAdapter


class StorageSelector:
    """
    Holds exactly one active adapter and mediates transitions.

    Usage:
        selector = StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=sql_adapter)
        await selector.start()
        adapter = selector.get_active_adapter()
    """

    def __init__(
        self,
        volatile: StorageAdapter,
        prober: ConnectivityProber,
        durable: StorageAdapter | None = None,
    ):
        self._volatile = volatile
        self._durable = durable
        self._prober = prober
        self._slot = _ActiveSlot(StorageMode.VOLATILE, volatile)
        self._inflight: asyncio.Task | None = None
        self._stale = False

        self.transitions = 0
        self.initialization_attempts = 0
        self.last_error: str | None = None
        self.last_reconcile: datetime | None = None

    # -------------------------------------------------------------------------
    # Readers (never block, never probe)
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> StorageMode:
        return self._slot.mode

    @property
    def volatile(self) -> StorageAdapter:
        return self._volatile

    @property
    def durable(self) -> StorageAdapter | None:
        return self._durable

    @property
    def is_stale(self) -> bool:
        """True after a durable call reported the store unavailable, until the next reconcile."""
        return self._stale

    def get_active_adapter(self) -> StorageAdapter:
        return self._slot.adapter

    def status(self) -> StorageStatus:
        slot = self._slot
        return StorageStatus(
            connected=slot.mode is StorageMode.DURABLE,
            storage_type=slot.mode.value,
            can_persist=slot.adapter.is_persistent,
            last_check=self._prober.last_check,
            last_error=self.last_error,
            transitions=self.transitions,
            initialization_attempts=self.initialization_attempts,
            durable_configured=self._durable is not None and self._prober.is_configured,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def start(self) -> StorageMode:
        """Initial reconcile at process start. Defaults to volatile if the probe fails."""
        mode = await self.reconcile()
        log = logger.info if mode is StorageMode.DURABLE else logger.warning
        log(
            f"Storage selector started in {mode.value} mode",
            extra={"event": "storage_selector_started", "storage_type": mode.value},
        )
        return mode

    async def reconcile(self) -> StorageMode:
        """
        Probe once and transition if warranted.

        Safe to call concurrently: callers arriving while a reconcile is in
        flight wait for that one instead of starting their own. Cancelling a
        waiting caller does not cancel the shared reconcile.
        """
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(self._reconcile_once())
            self._inflight = task
        return await asyncio.shield(task)

    def note_unavailable(self, exc: BaseException | None = None) -> None:
        """Record that a durable call failed so the next refresh re-probes immediately."""
        if self._slot.mode is not StorageMode.DURABLE:
            return
        self._stale = True
        if exc is not None:
            self.last_error = f"{type(exc).__name__}: {exc}"
        logger.warning(
            f"Durable store reported unavailable: {exc}",
            extra={"event": "durable_unavailable", "storage_type": StorageMode.DURABLE.value},
        )

    async def _reconcile_once(self) -> StorageMode:
        self._stale = False
        reachable = await self._prober.check_connectivity()
        self.last_reconcile = self._prober.last_check
        current = self._slot

        if reachable:
            self.last_error = None
            if current.mode is StorageMode.VOLATILE and self._durable is not None:
                self.initialization_attempts += 1
                try:
                    await self._durable.initialize()
                except InitializationError as e:
                    self.last_error = str(e)
                    logger.error(
                        f"Durable store reachable but initialization failed; staying volatile: {e}",
                        extra={
                            "event": "storage_switch_aborted",
                            "from_mode": StorageMode.VOLATILE.value,
                            "to_mode": StorageMode.DURABLE.value,
                            "attempt": self.initialization_attempts,
                        },
                    )
                    return self._slot.mode
                self._swap(StorageMode.DURABLE, self._durable)
        else:
            self.last_error = self._prober.last_error
            if current.mode is StorageMode.DURABLE:
                self._swap(StorageMode.VOLATILE, self._volatile)

        return self._slot.mode

    def _swap(self, mode: StorageMode, adapter: StorageAdapter) -> None:
        previous = self._slot.mode
        self._slot = _ActiveSlot(mode, adapter)
        self.transitions += 1

        extra = {
            "event": "storage_mode_changed",
            "from_mode": previous.value,
            "to_mode": mode.value,
            "storage_type": mode.value,
        }
        if mode is StorageMode.VOLATILE:
            logger.warning(
                f"Switched to volatile storage: writes will not persist ({self.last_error})",
                extra=extra,
            )
        else:
            logger.info("Switched to durable storage", extra=extra)

    async def close(self) -> None:
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._durable is not None:
            await self._durable.close()
        await self._volatile.close()
        self._prober.close()
