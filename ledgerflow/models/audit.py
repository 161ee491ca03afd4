"""
Audit Models for LedgerFlow

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability from an upload to the ledger entries it produced
2. Debugging information when the webhook or remote store misbehaves
3. A visible activity feed for the user

DESIGN DECISION: Audit logs are append-only. Only the newest entries are
kept locally (see AppSettings.audit_log_limit).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of intake and posting has its own event type.
    """
    # Intake
    DOCUMENT_UPLOADED = "document_uploaded"
    UPLOAD_FAILED = "upload_failed"
    PAYLOAD_MALFORMED = "payload_malformed"
    DOCUMENT_CLASSIFIED = "document_classified"
    DOCUMENT_QUEUED = "document_queued"

    # Approval & posting
    VOUCHER_APPROVED = "voucher_approved"
    BANK_STATEMENT_POSTED = "bank_statement_posted"
    LEDGER_CREATED = "ledger_created"
    LEDGER_POSTED = "ledger_posted"

    # Dashboard & GST
    DASHBOARD_UPDATED = "dashboard_updated"
    PORTAL_FETCHED = "portal_fetched"

    # Persistence
    CACHE_CORRUPTED = "cache_corrupted"
    REMOTE_MERGED = "remote_merged"
    REMOTE_SYNC_FAILED = "remote_sync_failed"
    DATA_CLEARED = "data_cleared"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'voucher', 'ledger', 'upload')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Voucher id, ledger name or file name"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one upload or approval"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.document_uploaded("inv.pdf", 1024, correlation_id)
        event = AuditEventBuilder.voucher_approved("INV-1", "Sales", correlation_id)
    """

    @staticmethod
    def document_uploaded(
        file_name: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_UPLOADED,
            entity_type="upload",
            entity_id=file_name,
            correlation_id=correlation_id,
            description=f"Document uploaded: {file_name}",
            details={"file_size_bytes": file_size},
            is_user_action=True,
        )

    @staticmethod
    def upload_failed(
        file_name: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="upload",
            entity_id=file_name,
            correlation_id=correlation_id,
            description=f"Upload failed: {file_name}",
            error_message=error_message,
        )

    @staticmethod
    def payload_malformed(
        file_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYLOAD_MALFORMED,
            severity=AuditSeverity.WARNING,
            entity_type="upload",
            entity_id=file_name,
            correlation_id=correlation_id,
            description="Webhook response was not JSON; continuing with an empty summary",
        )

    @staticmethod
    def document_classified(
        document_id: str,
        detected_type: str,
        kind: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_CLASSIFIED,
            entity_type="voucher",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Classified as {detected_type}",
            details={"detected_type": detected_type, "kind": kind},
        )

    @staticmethod
    def document_queued(
        document_id: str,
        pending_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_QUEUED,
            entity_type="voucher",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Awaiting review: {document_id}",
            details={"pending_count": pending_count},
        )

    @staticmethod
    def bank_statement_posted(
        statement_id: str,
        bank_name: str,
        balance: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BANK_STATEMENT_POSTED,
            entity_type="bank_statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            description=f"Bank statement posted: {bank_name}",
            details={"balance": balance},
        )

    @staticmethod
    def portal_fetched(entry_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PORTAL_FETCHED,
            entity_type="gst",
            description=f"GST portal feed fetched: {entry_count} invoices",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def remote_merged(
        pending: int,
        posted: int,
        bank_statements: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_MERGED,
            entity_type="remote",
            description="Remote vouchers merged into local state",
            details={
                "pending": pending,
                "posted": posted,
                "bank_statements": bank_statements,
            },
        )

    @staticmethod
    def data_cleared() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            description="All vouchers, ledgers and dashboard figures cleared",
            is_user_action=True,
        )

    @staticmethod
    def voucher_approved(
        voucher_id: str,
        detected_type: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VOUCHER_APPROVED,
            entity_type="voucher",
            entity_id=voucher_id,
            correlation_id=correlation_id,
            description=f"Voucher approved: {voucher_id}",
            details={"detected_type": detected_type},
            is_user_action=True,
        )

    @staticmethod
    def ledger_posted(
        party: str,
        voucher_id: str,
        amount: str,
        created: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LEDGER_CREATED if created
                else AuditEventType.LEDGER_POSTED
            ),
            entity_type="ledger",
            entity_id=party,
            correlation_id=correlation_id,
            description=(
                f"New ledger created: {party}" if created
                else f"Ledger updated: {party} - ₹{amount}"
            ),
            details={"voucher_id": voucher_id, "amount": amount},
        )

    @staticmethod
    def dashboard_updated(
        field: str,
        value: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_UPDATED,
            entity_type="dashboard",
            entity_id=field,
            description=f"Dashboard {field} set to ₹{value}",
            details={"value": value},
            is_user_action=True,
        )

    @staticmethod
    def cache_corrupted(
        key: str,
        dropped: int,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_CORRUPTED,
            severity=AuditSeverity.WARNING,
            entity_type="cache",
            entity_id=key,
            description=f"Cached {key} was damaged; {dropped} entries dropped",
            details={"dropped": dropped},
            error_message=error_message,
        )

    @staticmethod
    def remote_sync_failed(
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="remote",
            entity_id=operation,
            description=f"Remote sync failed: {operation}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
