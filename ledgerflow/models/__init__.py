"""
Data Models Package

This package contains all Pydantic models used in LedgerFlow.
All data flowing through the system must conform to these schemas.
"""

from ledgerflow.models.records import (
    Amount,
    BankStatement,
    BankStatementSummary,
    BankTransaction,
    CompanySettings,
    DashboardImpact,
    Document,
    FileType,
    IntakeState,
    Ledger,
    LedgerGroup,
    LedgerTransaction,
    PartyType,
    PortalEntry,
    ReconciliationRow,
    RemoteVoucherRow,
    ReconciliationStatus,
    TeamMember,
    UiVisibility,
    Voucher,
    VoucherKind,
    VoucherStatus,
    default_team,
    document_from_dict,
    resolve_voucher_kind,
)
from ledgerflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "Amount",
    "BankStatement",
    "BankStatementSummary",
    "BankTransaction",
    "CompanySettings",
    "DashboardImpact",
    "Document",
    "FileType",
    "IntakeState",
    "Ledger",
    "LedgerGroup",
    "LedgerTransaction",
    "PartyType",
    "PortalEntry",
    "ReconciliationRow",
    "RemoteVoucherRow",
    "ReconciliationStatus",
    "TeamMember",
    "UiVisibility",
    "Voucher",
    "VoucherKind",
    "VoucherStatus",
    "default_team",
    "document_from_dict",
    "resolve_voucher_kind",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
