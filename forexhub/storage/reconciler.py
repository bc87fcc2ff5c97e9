# forexhub/storage/reconciler.py
"""
Background Reconciliation Timer.

Recovers from volatile mode without traffic: every interval_seconds, if the
selector is volatile, run one reconcile. While durable it does nothing, so a
healthy service pays no probing overhead from the timer.
"""

import asyncio
import logging

from forexhub.storage.selector import StorageMode, StorageSelector

logger = logging.getLogger(__name__)


class BackgroundReconciler:
    def __init__(self, selector: StorageSelector, interval_seconds: float = 30.0):
        self._selector = selector
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> bool:
        """One timer tick. Returns True if it reconciled."""
        self.ticks += 1
        if self._selector.mode is StorageMode.DURABLE:
            return False
        mode = await self._selector.reconcile()
        if mode is StorageMode.DURABLE:
            logger.info(
                "Background reconcile restored durable storage",
                extra={"event": "background_recovered", "storage_type": mode.value},
            )
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.tick()
            except Exception:
                logger.exception(
                    "Background reconcile failed",
                    extra={"event": "background_reconcile_failed"},
                )

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="storage-reconciler")
        logger.info(
            f"Background reconciler started (every {self.interval_seconds}s while volatile)",
            extra={"event": "background_reconciler_started"},
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
