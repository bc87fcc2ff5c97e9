# forexhub/storage/factory.py
"""
Factory functions for the storage selector.
"""

import logging

from forexhub.config import Settings
from forexhub.storage.memory_adapter import MemoryStoreAdapter
from forexhub.storage.prober import ConnectivityProber
from forexhub.storage.selector import StorageSelector
from forexhub.storage.sql_adapter import SqlStoreAdapter

logger = logging.getLogger(__name__)


def build_storage_selector(settings: Settings) -> StorageSelector:
    """
    Wire prober, adapters and selector from settings.

    Without DATABASE_URL there is no durable adapter at all and the
    selector stays volatile for the life of the process.
    """
    durable = None
    if settings.DATABASE_URL:
        durable = SqlStoreAdapter(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            connect_timeout_seconds=settings.PROBE_TIMEOUT_SECONDS,
            auto_create_tables=settings.DB_AUTO_CREATE_TABLES,
        )
    else:
        logger.warning(
            "DATABASE_URL is not set; running on the volatile store only",
            extra={"event": "durable_not_configured", "storage_type": "volatile"},
        )

    prober = ConnectivityProber(settings.DATABASE_URL, timeout_seconds=settings.PROBE_TIMEOUT_SECONDS)
    return StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=durable)
