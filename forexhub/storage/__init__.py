# forexhub/storage/__init__.py
"""
Storage abstraction with dual-mode persistence.

Handlers ask the StorageSelector for the active StorageAdapter; the
selector swaps between the durable SQL adapter and the volatile in-memory
adapter based on connectivity probes.
"""

from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import (
    InitializationError,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
    ValidationError,
)
from forexhub.storage.factory import build_storage_selector
from forexhub.storage.memory_adapter import MemoryStoreAdapter
from forexhub.storage.pagination import Page, PaginationOptions, SortOrder
from forexhub.storage.prober import ConnectivityProber
from forexhub.storage.reconciler import BackgroundReconciler
from forexhub.storage.refresh import StorageRefreshHook, StorageRefreshMiddleware
from forexhub.storage.selector import StorageMode, StorageSelector
from forexhub.storage.sql_adapter import SqlStoreAdapter

__all__ = [
    "StorageAdapter",
    "StorageError",
    "StoreUnavailableError",
    "ValidationError",
    "NotFoundError",
    "InitializationError",
    "MemoryStoreAdapter",
    "SqlStoreAdapter",
    "ConnectivityProber",
    "StorageSelector",
    "StorageMode",
    "StorageRefreshHook",
    "StorageRefreshMiddleware",
    "BackgroundReconciler",
    "Page",
    "PaginationOptions",
    "SortOrder",
    "build_storage_selector",
]
