"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability from an upload to the ledgers it touched
2. Debugging capability when the webhook or remote store misbehaves
3. An activity feed the user can read back

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledgerflow.models.audit import AuditEvent, AuditEventBuilder
from ledgerflow.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (the `auditLogs` cache key by default)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent(self, limit: int = 100) -> list[AuditEvent]:
        """Newest events first; empty when no storage is configured."""
        if not self._storage:
            return []
        return await self._storage.get_recent_events(limit=limit)

    async def log_document_uploaded(
        self,
        file_name: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.document_uploaded(
            file_name=file_name,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    async def log_upload_failed(
        self,
        file_name: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.upload_failed(
            file_name=file_name,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_payload_malformed(
        self,
        file_name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payload_malformed(
            file_name=file_name,
            correlation_id=correlation_id,
        ))

    async def log_document_classified(
        self,
        document_id: str,
        detected_type: str,
        kind: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.document_classified(
            document_id=document_id,
            detected_type=detected_type,
            kind=kind,
            correlation_id=correlation_id,
        ))

    async def log_document_queued(
        self,
        document_id: str,
        pending_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.document_queued(
            document_id=document_id,
            pending_count=pending_count,
            correlation_id=correlation_id,
        ))

    async def log_bank_statement_posted(
        self,
        statement_id: str,
        bank_name: str,
        balance: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bank_statement_posted(
            statement_id=statement_id,
            bank_name=bank_name,
            balance=balance,
            correlation_id=correlation_id,
        ))

    async def log_portal_fetched(self, entry_count: int) -> None:
        await self.log(AuditEventBuilder.portal_fetched(entry_count=entry_count))

    async def log_remote_merged(
        self,
        pending: int,
        posted: int,
        bank_statements: int,
    ) -> None:
        await self.log(AuditEventBuilder.remote_merged(
            pending=pending,
            posted=posted,
            bank_statements=bank_statements,
        ))

    async def log_data_cleared(self) -> None:
        await self.log(AuditEventBuilder.data_cleared())

    async def log_voucher_approved(
        self,
        voucher_id: str,
        detected_type: str,
        correlation_id: UUID,
    ) -> None:
        """Log user approval of a pending document."""
        await self.log(AuditEventBuilder.voucher_approved(
            voucher_id=voucher_id,
            detected_type=detected_type,
            correlation_id=correlation_id,
        ))

    async def log_ledger_posted(
        self,
        party: str,
        voucher_id: str,
        amount: str,
        created: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_posted(
            party=party,
            voucher_id=voucher_id,
            amount=amount,
            created=created,
            correlation_id=correlation_id,
        ))

    async def log_dashboard_updated(self, field: str, value: str) -> None:
        await self.log(AuditEventBuilder.dashboard_updated(field=field, value=value))

    async def log_cache_corrupted(
        self,
        key: str,
        dropped: int,
        error_message: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.cache_corrupted(
            key=key,
            dropped=dropped,
            error_message=error_message,
        ))

    async def log_remote_sync_failed(
        self,
        operation: str,
        error_message: str,
    ) -> None:
        """Log a remote store write or read that was given up on."""
        await self.log(AuditEventBuilder.remote_sync_failed(
            operation=operation,
            error_message=error_message,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a document upload).
    Pass it through all subsequent operations.
    """
    return uuid4()
