"""
Document Classifier

Decides whether a webhook payload describes a bank statement or a voucher.

Bank statement signals:
1. An explicit route hint ("bank" in route_to, "activity" in ui_route)
2. Transactions in the summary (a bank_transactions list, or the summary
   itself being a list) with no invoice number alongside

Everything else is a voucher whose type comes from detected_type.

DESIGN DECISION: The type text is resolved to a VoucherKind here, once.
Ledger posting, metrics and GST matching all read the kind.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from ledgerflow.models.records import VoucherKind, resolve_voucher_kind

DEFAULT_VOUCHER_TYPE = "Manual"
BANK_STATEMENT_TYPE = "Bank Statement"


class Classification(BaseModel):
    """Outcome of classifying one webhook payload."""

    is_bank_statement: bool
    detected_type: str
    kind: VoucherKind
    summary: Any = Field(default_factory=dict)
    invoice_no: Optional[str] = None

    # Process-wide state the payload asks to replace (last writer wins)
    ui_visibility: Optional[dict[str, Any]] = None
    dashboard_impact: Optional[dict[str, Any]] = None


def _has_route_hint(payload: dict) -> bool:
    route_to = payload.get("route_to")
    ui_route = payload.get("ui_route")
    if isinstance(route_to, str) and "bank" in route_to.lower():
        return True
    return isinstance(ui_route, str) and "activity" in ui_route.lower()


def _has_bank_transactions(summary: Any) -> bool:
    if isinstance(summary, list):
        return True
    return isinstance(summary, dict) and isinstance(summary.get("bank_transactions"), list)


def _invoice_no(summary: Any) -> Optional[str]:
    if not isinstance(summary, dict):
        return None
    value = summary.get("invoice_no")
    if value is None or value == "":
        return None
    return str(value)


def _optional_dict(value: Any) -> Optional[dict[str, Any]]:
    return value if isinstance(value, dict) and value else None


def classify_payload(payload: dict) -> Classification:
    """
    Classify a webhook payload.

    Args:
        payload: Unwrapped webhook body, shaped like
            {detected_type?, route_to?, ui_route?, ui_visibility?,
             dashboard_impact?, summary}

    Returns:
        Classification; never raises on odd shapes.
    """
    if not isinstance(payload, dict):
        payload = {}

    summary = payload.get("summary")
    if summary is None:
        summary = {}
    invoice_no = _invoice_no(summary)

    is_bank = _has_route_hint(payload) or (
        _has_bank_transactions(summary) and invoice_no is None
    )

    if is_bank:
        detected_type = BANK_STATEMENT_TYPE
        kind = VoucherKind.BANK_STATEMENT
    else:
        detected_type = str(payload.get("detected_type") or DEFAULT_VOUCHER_TYPE)
        kind = resolve_voucher_kind(detected_type)
        # Type text mentioning a bank does not make a voucher a statement
        if kind == VoucherKind.BANK_STATEMENT:
            kind = VoucherKind.OTHER

    return Classification(
        is_bank_statement=is_bank,
        detected_type=detected_type,
        kind=kind,
        summary=summary,
        invoice_no=invoice_no,
        ui_visibility=_optional_dict(payload.get("ui_visibility")),
        dashboard_impact=_optional_dict(payload.get("dashboard_impact")),
    )
