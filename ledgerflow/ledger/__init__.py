"""Ledger posting, balances, metrics and GST reconciliation."""

from ledgerflow.ledger.balance import (
    build_bank_summary,
    replay_transactions,
    resolve_closing_balance,
)
from ledgerflow.ledger.gst import (
    GstBreakdown,
    compute_gst_breakdown,
    purchase_books,
    reconcile_portal,
    simulate_portal_feed,
    summarize_reconciliation,
)
from ledgerflow.ledger.metrics import DashboardMetrics, compute_dashboard_metrics
from ledgerflow.ledger.mutator import (
    UNKNOWN_PARTY,
    LedgerError,
    add_ledger,
    find_ledger,
    map_approved_voucher,
    post_approved_voucher,
    rebuild_ledgers,
)

__all__ = [
    "DashboardMetrics",
    "GstBreakdown",
    "LedgerError",
    "UNKNOWN_PARTY",
    "add_ledger",
    "build_bank_summary",
    "compute_dashboard_metrics",
    "compute_gst_breakdown",
    "find_ledger",
    "map_approved_voucher",
    "post_approved_voucher",
    "purchase_books",
    "rebuild_ledgers",
    "reconcile_portal",
    "replay_transactions",
    "resolve_closing_balance",
    "simulate_portal_feed",
    "summarize_reconciliation",
]
