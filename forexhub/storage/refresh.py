# forexhub/storage/refresh.py
"""
Request-Scoped Refresh Hook.

Runs before every request so a recovered (or lost) database is noticed by
the next request rather than the next timer tick. Reconciling costs one
bounded probe, so the hook is rate-limited by min_interval_seconds; the
limit is skipped when a durable call has just reported the store
unavailable.

The hook is best-effort: it never raises into the request.
"""

import logging
import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from forexhub.logging_config import storage_mode_var
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

STORAGE_MODE_HEADER = "X-Storage-Mode"


class StorageRefreshHook:
    def __init__(
        self,
        selector: StorageSelector,
        min_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._selector = selector
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._last_run: float | None = None
        self.runs = 0

    @property
    def selector(self) -> StorageSelector:
        return self._selector

    def _due(self) -> bool:
        if self._selector.is_stale or self._last_run is None:
            return True
        return self._clock() - self._last_run >= self.min_interval_seconds

    async def __call__(self) -> bool:
        """Reconcile if due. Returns True if a reconcile ran (successfully or not)."""
        if not self._due():
            return False
        self._last_run = self._clock()
        self.runs += 1
        try:
            await self._selector.reconcile()
        except Exception:
            logger.warning(
                "Storage refresh failed; serving request with current adapter",
                extra={"event": "storage_refresh_failed", "storage_type": self._selector.mode.value},
                exc_info=True,
            )
        return True


class StorageRefreshMiddleware(BaseHTTPMiddleware):
    """Run the refresh hook before each request and tag the response with the serving mode."""

    def __init__(self, app, hook: StorageRefreshHook):
        super().__init__(app)
        self._hook = hook

    async def dispatch(self, request: Request, call_next):
        await self._hook()
        mode = self._hook.selector.mode.value
        token = storage_mode_var.set(mode)
        try:
            response = await call_next(request)
        finally:
            storage_mode_var.reset(token)
        response.headers[STORAGE_MODE_HEADER] = mode
        return response
