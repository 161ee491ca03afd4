"""
Core Data Models for LedgerFlow

These models define the schemas for everything that flows from the
document webhook into the ledger:
1. Pending and posted vouchers
2. Bank statements and their transactions
3. Party ledgers
4. Dashboard aggregates and GST reconciliation rows

DESIGN DECISION: Amounts are Decimal and are parsed leniently on the way in
(see parse_amount). Extracted payloads are messy; the models absorb that
once so the ledger math never has to.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)

from ledgerflow.normalization import ZERO, parse_amount


# Lenient money type: "₹1,200.00", 1200 and None all validate
Amount = Annotated[Decimal, BeforeValidator(parse_amount)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class VoucherKind(str, Enum):
    """
    Closed set of document kinds.

    DESIGN DECISION: The free-text type from the webhook ("Sales Invoice",
    "purchase bill", ...) is resolved to one of these exactly once, at
    classification time. Every consumer reads the kind, never the text.
    """
    SALES = "Sales"
    PURCHASE = "Purchase"
    BANK_STATEMENT = "BankStatement"
    OTHER = "Other"


class VoucherStatus(str, Enum):
    """
    Review status of an uploaded document.

    CRITICAL: Documents only become Approved by explicit user action.
    """
    PENDING_REVIEW = "pending_review"
    APPROVED = "Approved"


class LedgerGroup(str, Enum):
    """Ledger grouping; debtors carry positive balances, creditors negative."""
    SUNDRY_DEBTORS = "Sundry Debtors"
    SUNDRY_CREDITORS = "Sundry Creditors"


class PartyType(str, Enum):
    CUSTOMER = "Customer"
    VENDOR = "Vendor"


class ReconciliationStatus(str, Enum):
    """Outcome of matching one invoice between books and the GST portal."""
    MATCHED = "Matched"
    MISMATCH = "Mismatch"
    MISSING_IN_PORTAL = "Missing in Portal"
    MISSING_IN_BOOKS = "Missing in Books"


class IntakeState(str, Enum):
    """
    Lifecycle of an upload, in order.

    ocr/detecting/mapping/voucher_creation are progress markers for
    listeners; they do not gate anything.
    """
    IDLE = "idle"
    UPLOADING = "uploading"
    OCR = "ocr"
    DETECTING = "detecting"
    MAPPING = "mapping"
    VOUCHER_CREATION = "voucher_creation"
    PENDING_REVIEW = "pending_review"
    POSTING = "posting"
    POSTED = "posted"
    ERROR = "error"


class FileType(str, Enum):
    """Coarse file type sent to the webhook."""
    PDF = "PDF"
    IMAGE = "IMAGE"
    OTHER = "OTHER"


_SALES_MARKERS = ("sales", "revenue")
_PURCHASE_MARKERS = ("purchase", "bill", "payment", "expense")


def resolve_voucher_kind(type_text: Optional[str]) -> VoucherKind:
    """
    Resolve a free-text document type to a VoucherKind.

    Case-insensitive substring rules, first match wins:
    bank → BANK_STATEMENT, sales/revenue → SALES,
    purchase/bill/payment/expense → PURCHASE, anything else → OTHER.
    """
    text = (type_text or "").lower()
    if "bank" in text:
        return VoucherKind.BANK_STATEMENT
    if any(marker in text for marker in _SALES_MARKERS):
        return VoucherKind.SALES
    if any(marker in text for marker in _PURCHASE_MARKERS):
        return VoucherKind.PURCHASE
    return VoucherKind.OTHER


# =============================================================================
# VOUCHERS
# =============================================================================

class Voucher(BaseModel):
    """
    An invoice or bill, pending review or posted.

    `id` is the extracted invoice number when there is one, otherwise a
    timestamp-seeded placeholder. Collisions between two uploads with no
    invoice number are possible and tolerated.

    date/party/amount/items are filled when the voucher is approved.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=_utcnow)
    file_name: Optional[str] = None
    file_data: Optional[str] = Field(
        default=None,
        description="Original file as a data URL, when small enough to keep"
    )
    detected_type: str = Field(default="Manual")
    kind: VoucherKind = VoucherKind.OTHER
    summary: dict[str, Any] = Field(default_factory=dict)
    dashboard_impact: dict[str, Any] = Field(default_factory=dict)
    status: VoucherStatus = VoucherStatus.PENDING_REVIEW

    date: Optional[str] = None
    party: Optional[str] = None
    amount: Amount = ZERO
    items: list[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def fill_kind(cls, data: Any) -> Any:
        """Older cached records carry only the type text."""
        if isinstance(data, dict) and not data.get("kind"):
            data = dict(data)
            data["kind"] = resolve_voucher_kind(
                data.get("detected_type") or data.get("type")
            )
        return data

    @property
    def is_sales(self) -> bool:
        return self.kind == VoucherKind.SALES

    @property
    def is_approved(self) -> bool:
        return self.status == VoucherStatus.APPROVED

    @property
    def tax_amount(self) -> Decimal:
        return parse_amount(self.summary.get("tax_amount"))


# =============================================================================
# BANK STATEMENTS
# =============================================================================

class BankTransaction(BaseModel):
    """One line of a bank statement. Unknown extracted keys are kept."""
    model_config = ConfigDict(extra="allow")

    date: Optional[str] = None
    description: Optional[str] = None
    debit: Amount = ZERO
    credit: Amount = ZERO


class BankStatementSummary(BaseModel):
    """Normalized header and transactions of a bank statement."""
    model_config = ConfigDict(extra="allow")

    bank_name: str = "Bank Account"
    account_number: str = "---"
    balance: Amount = ZERO
    opening_balance: Amount = ZERO
    bank_transactions: list[BankTransaction] = Field(default_factory=list)


class BankStatement(BaseModel):
    """An uploaded bank statement, pending review or approved."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=_utcnow)
    file_name: Optional[str] = None
    file_data: Optional[str] = None
    detected_type: str = "Bank Statement"
    kind: VoucherKind = VoucherKind.BANK_STATEMENT
    summary: BankStatementSummary = Field(default_factory=BankStatementSummary)
    dashboard_impact: dict[str, Any] = Field(default_factory=dict)
    status: VoucherStatus = VoucherStatus.PENDING_REVIEW

    @property
    def party(self) -> str:
        return self.summary.bank_name

    @property
    def amount(self) -> Decimal:
        return self.summary.balance

    @property
    def is_approved(self) -> bool:
        return self.status == VoucherStatus.APPROVED


Document = Union[Voucher, BankStatement]


def document_from_dict(data: dict) -> Document:
    """
    Build the right document model from a plain dict.

    Bank statements are recognised by their kind, or by 'bank' in the type
    text for records written before kinds existed.
    """
    kind = data.get("kind")
    type_text = data.get("detected_type") or data.get("type")
    if kind == VoucherKind.BANK_STATEMENT.value or (
        not kind and resolve_voucher_kind(type_text) == VoucherKind.BANK_STATEMENT
    ):
        return BankStatement.model_validate(data)
    return Voucher.model_validate(data)


# =============================================================================
# LEDGERS
# =============================================================================

class LedgerTransaction(BaseModel):
    """A voucher applied to a ledger. `amount` is unsigned; `kind` gives the sign."""

    id: str
    date: Optional[str] = None
    amount: Amount = ZERO
    type: Optional[str] = None
    kind: VoucherKind = VoucherKind.OTHER

    @model_validator(mode="before")
    @classmethod
    def fill_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("kind"):
            data = dict(data)
            data["kind"] = resolve_voucher_kind(data.get("type"))
        return data

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.kind == VoucherKind.SALES else -self.amount


class Ledger(BaseModel):
    """
    Running account for one party.

    INVARIANT: balance == opening_balance + sum of signed transaction
    amounts, and no two transactions share an id.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    group: LedgerGroup
    type: PartyType
    balance: Amount = ZERO
    opening_balance: Amount = ZERO
    status: str = "Verified"
    transactions: list[LedgerTransaction] = Field(default_factory=list)

    def has_transaction(self, transaction_id: str) -> bool:
        return any(tx.id == transaction_id for tx in self.transactions)

    def derived_balance(self) -> Decimal:
        """Recompute the balance from the opening balance and transactions."""
        return self.opening_balance + sum(
            (tx.signed_amount for tx in self.transactions), ZERO
        )


# =============================================================================
# DASHBOARD & SETTINGS
# =============================================================================

class DashboardImpact(BaseModel):
    """
    Denormalized dashboard aggregates.

    Not a source of truth: an upload may overwrite it wholesale and the
    user may edit cash/bank balances by hand.
    """
    model_config = ConfigDict(extra="ignore")

    cash_balance: Amount = ZERO
    bank_balance: Amount = ZERO
    receivables: Amount = ZERO
    payables: Amount = ZERO
    gst_input: Amount = ZERO
    gst_output: Amount = ZERO


class UiVisibility(BaseModel):
    """Which dashboard sections the last upload asked to show."""
    model_config = ConfigDict(extra="allow")

    accounting_dashboard: bool = True
    sales_purchase_tab: bool = True
    banking_tab: bool = True
    gst_tab: bool = True
    inventory_tab: bool = True
    vouchers_tab: bool = True
    ledgers_tab: bool = True


class CompanySettings(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="allow")

    name: str = "My Company"
    gstin: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""
    website: str = ""


class TeamMember(BaseModel):
    id: int
    name: str
    email: str = ""
    role: str = "Staff"
    status: str = "Active"


def default_team() -> list[TeamMember]:
    return [TeamMember(id=1, name="Admin User", role="Admin")]


# =============================================================================
# GST RECONCILIATION
# =============================================================================

class PortalEntry(BaseModel):
    """One invoice as reported on the GST portal."""
    model_config = ConfigDict(extra="allow")

    id: str
    invoice_no: str
    date: Optional[str] = None
    party: Optional[str] = None
    gstin: Optional[str] = None
    taxable: Amount = ZERO
    tax: Amount = ZERO
    total: Amount = ZERO
    status: str = "Uploaded"


class ReconciliationRow(BaseModel):
    """Derived, never persisted."""

    invoice_no: str
    party: Optional[str] = None
    book_amount: Decimal = ZERO
    portal_amount: Decimal = ZERO
    status: ReconciliationStatus
    diff: Optional[Decimal] = None


# =============================================================================
# REMOTE STORE ROWS
# =============================================================================

class RemoteVoucherRow(BaseModel):
    """A row of the remote `vouchers` table."""

    voucher_id: str = Field(..., min_length=1)
    type: str = "Manual"
    party: Optional[str] = None
    amount: Amount = ZERO
    summary: Union[dict[str, Any], list[Any]] = Field(default_factory=dict)
    status: VoucherStatus = VoucherStatus.PENDING_REVIEW
    file_name: Optional[str] = None
    file_data: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_document(cls, document: Document) -> "RemoteVoucherRow":
        """Build the row inserted when a document enters the pending queue."""
        if isinstance(document, BankStatement):
            party = document.party
            amount = document.amount
            summary = document.summary.model_dump(mode="json")
        else:
            party = document.party or document.summary.get("party") or "Unknown"
            amount = document.summary.get("grand_total")
            summary = document.summary

        return cls(
            voucher_id=document.id,
            type=document.detected_type,
            party=str(party),
            amount=amount,
            summary=summary,
            status=document.status,
            file_name=document.file_name,
            file_data=document.file_data,
            created_at=document.timestamp,
        )

    def to_document(self) -> Document:
        """Map a remote row back to a pending-queue document."""
        summary = self.summary
        if isinstance(summary, list):
            summary = {"bank_transactions": summary}

        return document_from_dict({
            "id": self.voucher_id,
            "timestamp": self.created_at,
            "file_name": self.file_name,
            "file_data": self.file_data,
            "detected_type": self.type,
            "summary": summary,
            "status": self.status,
        })
