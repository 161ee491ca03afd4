"""Services package."""

from ledgerflow.services.storage import (
    AuditStorageInterface,
    CacheError,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    JsonFileCache,
    LocalCacheAuditStorage,
    LocalCacheInterface,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
)
from ledgerflow.services.webhook import (
    DocumentWebhookClient,
    WebhookError,
    WebhookResponseError,
    WebhookTimeoutError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "CacheError",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "JsonFileCache",
    "LocalCacheAuditStorage",
    "LocalCacheInterface",
    "NotFoundError",
    "RemoteStoreInterface",
    "StorageError",
    # Webhook services
    "DocumentWebhookClient",
    "WebhookError",
    "WebhookResponseError",
    "WebhookTimeoutError",
]
