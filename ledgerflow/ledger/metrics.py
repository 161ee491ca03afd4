"""
Dashboard Metrics

Aggregates posted vouchers into the headline dashboard figures.
Figures that no posted voucher contributes to fall back to the
denormalized DashboardImpact values.
"""

from collections.abc import Sequence
from decimal import Decimal

from pydantic import BaseModel

from ledgerflow.models.records import (
    BankStatement,
    DashboardImpact,
    Voucher,
    VoucherKind,
)
from ledgerflow.normalization import ZERO


class DashboardMetrics(BaseModel):
    cash_balance: Decimal = ZERO
    bank_balance: Decimal = ZERO
    receivables: Decimal = ZERO
    payables: Decimal = ZERO
    gst_input: Decimal = ZERO
    gst_output: Decimal = ZERO

    # Raw sums before any fallback
    sales: Decimal = ZERO
    purchases: Decimal = ZERO


def compute_dashboard_metrics(
    posted_vouchers: Sequence[Voucher],
    bank_statements: Sequence[BankStatement],
    impact: DashboardImpact,
) -> DashboardMetrics:
    """
    Compute dashboard metrics.

    Sales vouchers count towards sales and GST output; every other
    non-bank voucher counts towards purchases and GST input.
    """
    sales = purchases = gst_input = gst_output = ZERO

    for voucher in posted_vouchers:
        if voucher.kind == VoucherKind.BANK_STATEMENT:
            continue
        if voucher.kind == VoucherKind.SALES:
            sales += voucher.amount
            gst_output += voucher.tax_amount
        else:
            purchases += voucher.amount
            gst_input += voucher.tax_amount

    if impact.bank_balance != ZERO:
        bank_balance = impact.bank_balance
    elif bank_statements:
        bank_balance = bank_statements[0].summary.balance
    else:
        bank_balance = ZERO

    return DashboardMetrics(
        cash_balance=impact.cash_balance,
        bank_balance=bank_balance,
        receivables=sales or impact.receivables,
        payables=purchases or impact.payables,
        gst_input=gst_input or impact.gst_input,
        gst_output=gst_output or impact.gst_output,
        sales=sales,
        purchases=purchases,
    )
