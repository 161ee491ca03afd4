"""
Local Durable Cache

DESIGN DECISION: The local cache is the system of record for a session.
Each collection is one JSON file, overwritten wholesale on every change.
Files are written to a temporary name and renamed into place so a crash
mid-write leaves the previous version intact.

Keys are namespaced (e.g. "ledgerflow_pendingVouchers.json") so several
workspaces can share a directory.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from ledgerflow.config import get_settings
from ledgerflow.models.audit import AuditEvent
from ledgerflow.services.storage.interface import (
    AuditStorageInterface,
    CacheError,
    LocalCacheInterface,
)

logger = structlog.get_logger(__name__)

# Every collection the application keeps in the cache
CACHE_KEYS = (
    "postedVouchers",
    "bankStatements",
    "pendingVouchers",
    "ledgers",
    "companySettings",
    "teamMembers",
    "auditLogs",
    "uiVisibility",
    "dashboardImpact",
    "webhookData",
)


class JsonFileCache(LocalCacheInterface):
    """
    File-backed implementation of the local cache.

    Values must be JSON-compatible; pydantic models should be dumped with
    model_dump(mode="json") before being stored.
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        if directory is None or namespace is None:
            settings = get_settings().cache
            directory = directory or settings.directory
            namespace = namespace or settings.namespace

        self._directory = Path(directory)
        self._namespace = namespace

    def _path(self, key: str) -> Path:
        return self._directory / f"{self._namespace}_{key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CacheError(f"Failed to read cache key {key}: {e}")
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CacheError(f"Cache key {key} is not valid JSON: {e}")

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory,
                prefix=f".{self._namespace}_{key}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(value, handle, ensure_ascii=False, default=str)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            raise CacheError(f"Failed to write cache key {key}: {e}")

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def clear(self) -> None:
        if not self._directory.exists():
            return
        for path in self._directory.glob(f"{self._namespace}_*.json"):
            path.unlink(missing_ok=True)


class LocalCacheAuditStorage(AuditStorageInterface):
    """
    Keeps the newest audit events under the `auditLogs` cache key.

    Events that fail to decode are skipped rather than failing the read.
    """

    KEY = "auditLogs"

    def __init__(self, cache: LocalCacheInterface, limit: Optional[int] = None):
        self._cache = cache
        self._limit = limit or get_settings().app.audit_log_limit

    def _load_raw(self) -> list:
        try:
            raw = self._cache.get(self.KEY)
        except CacheError as e:
            logger.warning("audit_cache_unreadable", error=str(e))
            return []
        return raw if isinstance(raw, list) else []

    async def append_event(self, event: AuditEvent) -> bool:
        entries = [event.model_dump(mode="json"), *self._load_raw()]
        try:
            self._cache.set(self.KEY, entries[:self._limit])
            return True
        except CacheError as e:
            logger.warning("audit_cache_write_failed", error=str(e))
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = []
        for entry in self._load_raw():
            try:
                events.append(AuditEvent.model_validate(entry))
            except ValidationError:
                continue  # Skip malformed entries
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
