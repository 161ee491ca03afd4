"""
Bank Statement Balance Reconciler

Extraction sometimes omits a statement's closing balance but reliably
lists its transactions. The closing balance is therefore resolved as:

1. The first non-zero of balance / ending_balance / total_balance
2. Otherwise the cached dashboard bank balance
3. If still zero and transactions exist:
   opening balance + sum(credits) - sum(debits)

KNOWN AMBIGUITY: a statement that genuinely closes at zero is
indistinguishable from one with a missing balance, and is recomputed.
"""

from decimal import Decimal
from typing import Any, Optional

from ledgerflow.models.records import (
    BankStatementSummary,
    BankTransaction,
    DashboardImpact,
)
from ledgerflow.normalization import (
    ZERO,
    first_nonzero_amount,
    first_present,
)

CLOSING_BALANCE_KEYS = ("balance", "ending_balance", "total_balance")
OPENING_BALANCE_KEYS = ("opening_balance", "beginning_balance", "start_balance")
CREDIT_KEYS = ("credit_amount", "credit")
DEBIT_KEYS = ("debit_amount", "debit")
DESCRIPTION_KEYS = ("description", "narration", "particulars")

DEFAULT_BANK_NAME = "Bank Account"
DEFAULT_ACCOUNT_NUMBER = "---"


def _as_summary_dict(summary: Any) -> dict:
    """A bare list of transactions is treated as {'bank_transactions': [...]}."""
    if isinstance(summary, list):
        return {"bank_transactions": summary}
    if isinstance(summary, dict):
        return dict(summary)
    return {}


def _raw_transactions(summary: dict) -> list[dict]:
    transactions = summary.get("bank_transactions")
    if not isinstance(transactions, list):
        return []
    return [tx for tx in transactions if isinstance(tx, dict)]


def transaction_credit(transaction: dict) -> Decimal:
    return first_nonzero_amount(transaction, *CREDIT_KEYS)


def transaction_debit(transaction: dict) -> Decimal:
    return first_nonzero_amount(transaction, *DEBIT_KEYS)


def replay_transactions(summary: Any) -> Decimal:
    """Opening balance plus credits minus debits."""
    data = _as_summary_dict(summary)
    opening = first_nonzero_amount(data, *OPENING_BALANCE_KEYS)
    transactions = _raw_transactions(data)
    credits = sum((transaction_credit(tx) for tx in transactions), ZERO)
    debits = sum((transaction_debit(tx) for tx in transactions), ZERO)
    return opening + credits - debits


def resolve_closing_balance(
    summary: Any,
    cached_impact: Optional[DashboardImpact] = None,
) -> Decimal:
    """
    Resolve a statement's closing balance.

    Args:
        summary: Raw statement summary (dict, or a bare transaction list)
        cached_impact: Dashboard impact known at the time of upload

    Returns:
        The explicit balance, unless it is exactly zero and transactions
        are available to replay.
    """
    data = _as_summary_dict(summary)

    balance = first_nonzero_amount(data, *CLOSING_BALANCE_KEYS)
    if balance == ZERO and cached_impact is not None:
        balance = cached_impact.bank_balance

    if balance == ZERO and _raw_transactions(data):
        balance = replay_transactions(data)

    return balance


def normalize_transaction(transaction: dict) -> BankTransaction:
    """Resolve debit/credit/description aliases on one transaction line."""
    data = dict(transaction)
    data["debit"] = transaction_debit(transaction)
    data["credit"] = transaction_credit(transaction)

    description = first_present(transaction, *DESCRIPTION_KEYS)
    data["description"] = str(description) if description is not None else None

    tx_date = transaction.get("date")
    data["date"] = str(tx_date) if tx_date is not None else None

    return BankTransaction.model_validate(data)


def build_bank_summary(
    summary: Any,
    cached_impact: Optional[DashboardImpact] = None,
) -> BankStatementSummary:
    """
    Normalize a raw bank summary into a BankStatementSummary.

    Extra extracted keys are preserved; the balance is resolved with
    resolve_closing_balance.
    """
    data = _as_summary_dict(summary)
    transactions = [normalize_transaction(tx) for tx in _raw_transactions(data)]

    data.update(
        bank_transactions=transactions,
        balance=resolve_closing_balance(data, cached_impact),
        opening_balance=first_nonzero_amount(data, *OPENING_BALANCE_KEYS),
        bank_name=str(first_present(data, "bank_name", "party", default=DEFAULT_BANK_NAME)),
        account_number=str(first_present(data, "account_number", default=DEFAULT_ACCOUNT_NUMBER)),
    )
    return BankStatementSummary.model_validate(data)
