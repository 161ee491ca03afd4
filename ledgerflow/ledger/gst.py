"""
GST Portal Matcher

Reconciles purchase vouchers in the books against invoices reported on
the GST portal.

Matching is keyed by invoice number:
1. Every book purchase starts as "Missing in Portal"
2. A portal invoice with a book counterpart is "Matched" when the amounts
   differ by less than the tolerance (1 currency unit by default, which
   absorbs rounding from tax splits), else "Mismatch"
3. A portal invoice without a counterpart is "Missing in Books"

All rows are returned; consumers count them per status.
"""

import random
from collections import Counter
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from ledgerflow.ledger.metrics import compute_dashboard_metrics
from ledgerflow.models.records import (
    DashboardImpact,
    PortalEntry,
    ReconciliationRow,
    ReconciliationStatus,
    Voucher,
    VoucherKind,
)
from ledgerflow.normalization import ZERO, utc_now_iso

DEFAULT_TOLERANCE = Decimal("1")

# Share of an invoice total reported as taxable value / tax
TAXABLE_SHARE = Decimal("0.82")
TAX_SHARE = Decimal("0.18")
CENT = Decimal("0.01")


def purchase_books(posted_vouchers: Iterable[Voucher]) -> list[Voucher]:
    return [v for v in posted_vouchers if v.kind == VoucherKind.PURCHASE]


def reconcile_portal(
    books: Iterable[Voucher],
    portal_entries: Iterable[PortalEntry],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[ReconciliationRow]:
    """
    Match book purchases against portal invoices.

    Args:
        books: Posted vouchers; only purchases are considered
        portal_entries: Invoices reported on the portal
        tolerance: Largest absolute difference still counted as a match

    Returns:
        One row per invoice number, books first, in insertion order.
    """
    rows: dict[str, ReconciliationRow] = {}

    for voucher in purchase_books(books):
        rows[voucher.id] = ReconciliationRow(
            invoice_no=voucher.id,
            party=voucher.party,
            book_amount=voucher.amount,
            portal_amount=ZERO,
            status=ReconciliationStatus.MISSING_IN_PORTAL,
        )

    for entry in portal_entries:
        existing = rows.get(entry.invoice_no)
        if existing is not None:
            diff = existing.book_amount - entry.total
            rows[entry.invoice_no] = existing.model_copy(update={
                "portal_amount": entry.total,
                "status": (
                    ReconciliationStatus.MATCHED if abs(diff) < tolerance
                    else ReconciliationStatus.MISMATCH
                ),
                "diff": diff,
            })
        else:
            rows[entry.invoice_no] = ReconciliationRow(
                invoice_no=entry.invoice_no,
                party=entry.party,
                book_amount=ZERO,
                portal_amount=entry.total,
                status=ReconciliationStatus.MISSING_IN_BOOKS,
                diff=-entry.total,
            )

    return list(rows.values())


def summarize_reconciliation(rows: Iterable[ReconciliationRow]) -> dict[str, int]:
    """Count rows per status; every status is present, zero or not."""
    counts = Counter(row.status for row in rows)
    return {status.value: counts.get(status, 0) for status in ReconciliationStatus}


def _portal_entry(voucher: Voucher, index: int, total: Decimal) -> PortalEntry:
    gstin = voucher.summary.get("gstin") or f"29AAAAA{1000 + index}A1Z5"
    return PortalEntry(
        id=f"GSTR_{voucher.id}",
        invoice_no=voucher.id,
        date=voucher.date or utc_now_iso(),
        party=voucher.party or "Unknown",
        gstin=gstin,
        taxable=(total * TAXABLE_SHARE).quantize(CENT),
        tax=(total * TAX_SHARE).quantize(CENT),
        total=total,
    )


def simulate_portal_feed(
    posted_vouchers: Iterable[Voucher],
    rng: Optional[random.Random] = None,
) -> list[PortalEntry]:
    """
    Produce a plausible portal feed from the books.

    Per purchase voucher: 70% reported exactly, 20% reported 10 higher,
    10% not reported. One extra invoice (INV-9999) is always reported
    that the books do not have.
    """
    rng = rng or random.Random()
    entries: list[PortalEntry] = []

    for index, voucher in enumerate(purchase_books(posted_vouchers)):
        scenario = rng.random()
        if scenario > 0.3:
            entries.append(_portal_entry(voucher, index, voucher.amount))
        elif scenario > 0.1:
            entries.append(_portal_entry(voucher, index, voucher.amount + 10))

    entries.append(PortalEntry(
        id="GSTR_EXTRA_1",
        invoice_no="INV-9999",
        date=utc_now_iso(),
        party="Unknown Vendor Services",
        gstin="27ABCDE1234F1Z5",
        taxable=Decimal("5000.00"),
        tax=Decimal("900.00"),
        total=Decimal("5900.00"),
    ))
    return entries


class GstBreakdown(BaseModel):
    output: Decimal = ZERO
    input: Decimal = ZERO
    payable: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    status: str = "Compliant"


def compute_gst_breakdown(
    posted_vouchers: Sequence[Voucher],
    impact: DashboardImpact,
) -> GstBreakdown:
    """Output vs input tax, net payable and the intra-state CGST/SGST split."""
    metrics = compute_dashboard_metrics(posted_vouchers, [], impact)
    output = metrics.gst_output
    return GstBreakdown(
        output=output,
        input=metrics.gst_input,
        payable=max(ZERO, output - metrics.gst_input),
        cgst=output / 2,
        sgst=output / 2,
        igst=ZERO,
        status="Action Required" if output > 0 else "Compliant",
    )
