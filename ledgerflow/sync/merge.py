"""
Persistence Merge Layer

Folds a remote snapshot into local state at startup.

Rules:
1. Local wins: a remote item whose id exists locally is dropped
2. Remote-only items are placed BEFORE local items
3. Each collection is merged independently
4. Ledgers are rebuilt from remote-approved vouchers; transaction ids
   make this idempotent, so re-running a merge changes nothing
"""

from collections.abc import Iterable, Sequence
from typing import Optional, Protocol, TypeVar

from ledgerflow.ledger import map_approved_voucher, rebuild_ledgers
from ledgerflow.models.records import (
    BankStatement,
    DashboardImpact,
    Document,
    RemoteVoucherRow,
    Voucher,
)
from ledgerflow.store import AccountState


class _HasId(Protocol):
    id: str


ItemT = TypeVar("ItemT", bound=_HasId)


def merge_by_id(local: Sequence[ItemT], incoming: Iterable[ItemT]) -> list[ItemT]:
    """Return unique_incoming + local, where unique means id not in local."""
    local_ids = {item.id for item in local}
    unique_incoming = [item for item in incoming if item.id not in local_ids]
    return [*unique_incoming, *local]


def rows_to_documents(rows: Iterable[RemoteVoucherRow]) -> list[Document]:
    return [row.to_document() for row in rows]


def merge_remote_snapshot(
    state: AccountState,
    rows: Sequence[RemoteVoucherRow],
    impact: Optional[DashboardImpact] = None,
) -> AccountState:
    """
    Merge remote voucher rows and the remote impact into a copy of state.

    Returns:
        A new AccountState; the input is not modified
    """
    documents = rows_to_documents(rows)

    approved_vouchers = [
        map_approved_voucher(doc)
        for doc in documents
        if isinstance(doc, Voucher) and doc.is_approved
    ]
    approved_statements = [
        doc for doc in documents
        if isinstance(doc, BankStatement) and doc.is_approved
    ]

    return state.model_copy(update={
        "pending_vouchers": merge_by_id(state.pending_vouchers, documents),
        "posted_vouchers": merge_by_id(state.posted_vouchers, approved_vouchers),
        "bank_statements": merge_by_id(state.bank_statements, approved_statements),
        "dashboard_impact": impact if impact is not None else state.dashboard_impact,
        "ledgers": rebuild_ledgers(state.ledgers, approved_vouchers),
    })
