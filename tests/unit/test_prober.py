"""
Unit tests for the connectivity prober.

Uses a SQLite file as the reachable database; unreachable cases use URLs
that fail fast.
"""

import time

import pytest

from forexhub.storage.prober import ConnectivityProber


class TestConnectivityProber:
    """check_connectivity() never raises."""

    @pytest.mark.asyncio
    async def test_reachable_sqlite(self, tmp_path):
        prober = ConnectivityProber(f"sqlite:///{tmp_path / 'probe.db'}", timeout_seconds=2.0)

        assert await prober.check_connectivity() is True
        assert prober.last_error is None
        assert prober.last_check is not None
        assert prober.last_latency_ms is not None
        prober.close()

    @pytest.mark.asyncio
    async def test_not_configured(self):
        prober = ConnectivityProber(None)

        assert prober.is_configured is False
        assert await prober.check_connectivity() is False
        assert "not configured" in prober.last_error

    @pytest.mark.asyncio
    async def test_unopenable_database_returns_false(self, tmp_path):
        missing_dir = tmp_path / "does-not-exist" / "probe.db"
        prober = ConnectivityProber(f"sqlite:///{missing_dir}", timeout_seconds=2.0)

        assert await prober.check_connectivity() is False
        assert prober.last_error.startswith("OperationalError")

    @pytest.mark.asyncio
    async def test_missing_driver_returns_false(self):
        prober = ConnectivityProber("nosuchdialect://user@localhost/db", timeout_seconds=1.0)

        assert await prober.check_connectivity() is False
        assert prober.last_error is not None

    @pytest.mark.asyncio
    async def test_timeout_bounds_latency(self, monkeypatch):
        prober = ConnectivityProber("sqlite://", timeout_seconds=0.1)
        monkeypatch.setattr(prober, "_probe", lambda: time.sleep(0.5))

        start = time.perf_counter()
        assert await prober.check_connectivity() is False
        assert time.perf_counter() - start < 0.4
        assert "timed out" in prober.last_error
