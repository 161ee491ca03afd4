"""
Abstract Storage Interfaces

DESIGN DECISION: Storage is defined by abstract interfaces.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Three kinds of storage exist:
- RemoteStoreInterface: the eventually-consistent cloud mirror
  (two logical tables, `vouchers` and `dashboard_impact`)
- LocalCacheInterface: the durable key-value cache that is the system
  of record for the session
- AuditStorageInterface: where audit events are kept
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ledgerflow.models.audit import AuditEvent
from ledgerflow.models.records import (
    DashboardImpact,
    RemoteVoucherRow,
    VoucherStatus,
)


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote voucher store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Callers treat every failure as
    non-fatal; implementations raise StorageError.
    """

    @abstractmethod
    async def insert_voucher(self, row: RemoteVoucherRow) -> bool:
        """
        Insert a newly uploaded voucher.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update_voucher_status(
        self,
        voucher_id: str,
        status: VoucherStatus,
    ) -> bool:
        """
        Update the status of a voucher.

        Returns:
            True if a row was updated

        Raises:
            NotFoundError: If no row has this voucher id
        """
        pass

    @abstractmethod
    async def list_vouchers(self) -> list[RemoteVoucherRow]:
        """
        List every voucher row, newest (created_at) first.
        """
        pass

    @abstractmethod
    async def delete_all_vouchers(self) -> int:
        """
        Delete every voucher row.

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    async def get_dashboard_impact(self) -> Optional[DashboardImpact]:
        """
        Read the single dashboard impact row (id=1).

        Returns:
            The impact, or None if it was never written
        """
        pass

    @abstractmethod
    async def upsert_dashboard_impact(self, impact: DashboardImpact) -> bool:
        """Create or replace the dashboard impact row."""
        pass

    async def reset_dashboard_impact(self) -> bool:
        """Zero every dashboard impact figure."""
        return await self.upsert_dashboard_impact(DashboardImpact())


class LocalCacheInterface(ABC):
    """
    Abstract interface for the local durable cache.

    One JSON-compatible value per key, overwritten wholesale.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """
        Read a cached value.

        Returns:
            The decoded value, or None if the key was never written

        Raises:
            CacheError: If the stored value cannot be decoded
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Overwrite a cached value.

        Raises:
            CacheError: If the value cannot be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every key in this cache's namespace."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class CacheError(StorageError):
    """Local cache could not be read or written."""
    pass
