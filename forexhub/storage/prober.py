# forexhub/storage/prober.py
"""
Connectivity Prober.

Answers "is the durable store reachable right now?" with a bounded-latency
SELECT 1. The probe never raises: timeouts, refused connections, bad
credentials and missing drivers all come back as False, with the reason
kept in last_error for the health surface.
"""

import asyncio
import logging
import time
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.engine import Engine

from forexhub.database import create_probe_engine
from forexhub.storage.text import utcnow

logger = logging.getLogger(__name__)


class ConnectivityProber:
    """
    Probe the durable store on a dedicated NullPool engine.

    Probes open a fresh connection every time so a healthy-looking pooled
    connection can never mask an outage.
    """

    def __init__(self, database_url: str | None, timeout_seconds: float = 2.0):
        self._database_url = database_url
        self.timeout_seconds = timeout_seconds
        self._engine: Engine | None = None

        self.last_check: datetime | None = None
        self.last_error: str | None = None
        self.last_latency_ms: int | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._database_url)

    def _probe(self) -> None:
        if self._engine is None:
            self._engine = create_probe_engine(self._database_url, self.timeout_seconds)
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    async def check_connectivity(self) -> bool:
        """Return True if SELECT 1 round-trips within timeout_seconds. Never raises."""
        self.last_check = utcnow()
        if not self._database_url:
            self.last_error = "DATABASE_URL is not configured"
            return False

        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        try:
            await asyncio.wait_for(loop.run_in_executor(None, self._probe), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self.last_error = f"Connectivity probe timed out after {self.timeout_seconds}s"
            logger.debug(self.last_error, extra={"event": "probe_timeout"})
            return False
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.debug(f"Connectivity probe failed: {self.last_error}", extra={"event": "probe_failed"})
            return False

        self.last_latency_ms = int((time.perf_counter() - start) * 1000)
        self.last_error = None
        return True

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
