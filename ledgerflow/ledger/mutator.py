"""
Ledger Mutator

Folds approved vouchers into per-party ledgers.

Sign rule:
- Sales vouchers increase the party balance (debtor, Dr)
- Every other voucher decreases it (creditor, Cr)

INVARIANTS:
1. ledger.balance == ledger.derived_balance() after every posting
2. A voucher id appears at most once in a ledger's transactions,
   so posting the same voucher twice is a no-op

DESIGN DECISION: Functions here take a list of ledgers and return a NEW
list. Nothing is mutated in place; the store decides when to persist.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

from ledgerflow.models.records import (
    Ledger,
    LedgerGroup,
    LedgerTransaction,
    PartyType,
    Voucher,
    VoucherKind,
    VoucherStatus,
)
from ledgerflow.normalization import (
    ZERO,
    first_present,
    parse_amount,
    parse_date_to_iso,
)

UNKNOWN_PARTY = "Unknown"
AMOUNT_KEYS = ("grand_total", "total_amount", "total")
PARTY_KEYS = ("party", "vendor_name", "customer_name")


class LedgerError(Exception):
    """Invalid ledger operation (e.g. creating a duplicate ledger)."""
    pass


def map_approved_voucher(document: Voucher) -> Voucher:
    """
    Normalize a pending voucher into its posted form.

    - id: extracted invoice number, else the pending id
    - date: summary date (or upload time) as ISO
    - amount: grand_total, then total_amount, then total
    - party: party, then vendor_name, then customer_name, else "Unknown"
    """
    summary = document.summary or {}

    detected_type = document.detected_type or summary.get("type") or "Manual"
    party = str(first_present(summary, *PARTY_KEYS, default=UNKNOWN_PARTY)).strip()
    items = summary.get("items")

    return document.model_copy(update={
        "id": str(summary.get("invoice_no") or document.id),
        "detected_type": detected_type,
        "date": parse_date_to_iso(summary.get("date") or document.timestamp),
        "amount": parse_amount(first_present(summary, *AMOUNT_KEYS, default=0)),
        "party": party or UNKNOWN_PARTY,
        "items": [item for item in items if isinstance(item, dict)] if isinstance(items, list) else [],
        "status": VoucherStatus.APPROVED,
    })


def _signed(amount: Decimal, is_sales: bool) -> Decimal:
    return amount if is_sales else -amount


def find_ledger(ledgers: Iterable[Ledger], name: str) -> Optional[Ledger]:
    return next((ledger for ledger in ledgers if ledger.name == name), None)


def post_approved_voucher(ledgers: list[Ledger], voucher: Voucher) -> list[Ledger]:
    """
    Apply one approved voucher to the party ledgers.

    Returns:
        A new list of ledgers. Unchanged when the party is unknown or the
        voucher was already posted to that party.
    """
    party = voucher.party or UNKNOWN_PARTY
    if party == UNKNOWN_PARTY:
        return list(ledgers)

    is_sales = voucher.kind == VoucherKind.SALES
    transaction = LedgerTransaction(
        id=voucher.id,
        date=voucher.date,
        amount=voucher.amount,
        type=voucher.detected_type,
        kind=voucher.kind,
    )

    posted: list[Ledger] = []
    found = False
    for ledger in ledgers:
        if not found and ledger.name == party:
            found = True
            if not ledger.has_transaction(voucher.id):
                ledger = ledger.model_copy(update={
                    "balance": ledger.balance + _signed(voucher.amount, is_sales),
                    "transactions": [transaction, *ledger.transactions],
                })
        posted.append(ledger)

    if not found:
        posted.append(Ledger(
            name=party,
            group=LedgerGroup.SUNDRY_DEBTORS if is_sales else LedgerGroup.SUNDRY_CREDITORS,
            type=PartyType.CUSTOMER if is_sales else PartyType.VENDOR,
            balance=_signed(voucher.amount, is_sales),
            transactions=[transaction],
        ))

    return posted


def rebuild_ledgers(ledgers: list[Ledger], vouchers: Iterable[Voucher]) -> list[Ledger]:
    """Post a sequence of approved vouchers; already-posted ids are skipped."""
    result = list(ledgers)
    for voucher in vouchers:
        result = post_approved_voucher(result, voucher)
    return result


def add_ledger(
    ledgers: list[Ledger],
    name: str,
    group: LedgerGroup = LedgerGroup.SUNDRY_DEBTORS,
    party_type: PartyType = PartyType.CUSTOMER,
    opening_balance=ZERO,
) -> list[Ledger]:
    """
    Create a manual ledger with an opening balance and no transactions.

    Raises:
        LedgerError: If the name is empty or already taken
    """
    name = (name or "").strip()
    if not name:
        raise LedgerError("Ledger name is required")
    if find_ledger(ledgers, name) is not None:
        raise LedgerError(f"Ledger already exists: {name}")

    opening = parse_amount(opening_balance)
    return [*ledgers, Ledger(
        name=name,
        group=group,
        type=party_type,
        balance=opening,
        opening_balance=opening,
    )]
