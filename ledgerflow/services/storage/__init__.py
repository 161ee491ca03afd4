"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
a local JSON file cache (system of record) and a Google Sheets remote mirror.
"""

from ledgerflow.services.storage.interface import (
    AuditStorageInterface,
    CacheError,
    ConnectionError,
    LocalCacheInterface,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
)
from ledgerflow.services.storage.local_cache import (
    CACHE_KEYS,
    JsonFileCache,
    LocalCacheAuditStorage,
)
from ledgerflow.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LocalCacheInterface",
    "RemoteStoreInterface",
    # Exceptions
    "CacheError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Local cache
    "CACHE_KEYS",
    "JsonFileCache",
    "LocalCacheAuditStorage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
]
