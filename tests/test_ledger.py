"""Tests for ledger posting, bank balances, metrics and GST matching."""

import random
from decimal import Decimal

import pytest

from ledgerflow.ledger import (
    LedgerError,
    add_ledger,
    build_bank_summary,
    compute_dashboard_metrics,
    compute_gst_breakdown,
    map_approved_voucher,
    post_approved_voucher,
    rebuild_ledgers,
    reconcile_portal,
    resolve_closing_balance,
    simulate_portal_feed,
    summarize_reconciliation,
)
from ledgerflow.models.records import (
    BankStatement,
    BankStatementSummary,
    DashboardImpact,
    LedgerGroup,
    PartyType,
    PortalEntry,
    ReconciliationStatus,
    Voucher,
    VoucherKind,
    VoucherStatus,
)


def posted(voucher_id, party, amount, kind, tax="0"):
    return Voucher(
        id=voucher_id,
        party=party,
        amount=amount,
        kind=kind,
        detected_type=kind.value,
        summary={"tax_amount": tax},
        status=VoucherStatus.APPROVED,
    )


def portal(invoice_no, total):
    return PortalEntry(id=f"GSTR_{invoice_no}", invoice_no=invoice_no, total=total)


class TestClosingBalance:
    """Tests for resolve_closing_balance."""

    def test_explicit_balance(self):
        """Test an explicit balance wins."""
        assert resolve_closing_balance({"balance": "12,000"}) == Decimal("12000")

    def test_alias_keys(self):
        """Test ending_balance and total_balance are tried in order."""
        assert resolve_closing_balance({"balance": 0, "ending_balance": "900"}) == Decimal("900")
        assert resolve_closing_balance({"total_balance": 300}) == Decimal("300")

    def test_cached_impact_fallback(self):
        """Test the cached bank balance is used when the summary has none."""
        impact = DashboardImpact(bank_balance=Decimal("4500"))
        assert resolve_closing_balance({}, impact) == Decimal("4500")

    def test_replays_transactions(self):
        """Test opening + credits - debits when no balance is given."""
        summary = {
            "opening_balance": "1000",
            "bank_transactions": [
                {"credit_amount": "500"},
                {"debit": "200"},
                {"credit": "50", "debit_amount": "25"},
            ],
        }
        assert resolve_closing_balance(summary) == Decimal("1325")

    def test_bare_list_summary(self):
        """Test a bare transaction list is replayed from zero."""
        assert resolve_closing_balance([{"credit": 100}, {"debit": 30}]) == Decimal("70")

    def test_nothing_to_go_on(self):
        """Test an empty summary resolves to zero."""
        assert resolve_closing_balance({}) == Decimal("0")

    def test_build_bank_summary_defaults(self):
        """Test bank name and account number defaults."""
        summary = build_bank_summary({"party": "HDFC Bank", "balance": "10"})
        assert summary.bank_name == "HDFC Bank"
        assert summary.account_number == "---"
        assert summary.balance == Decimal("10")

        assert build_bank_summary([]).bank_name == "Bank Account"

    def test_build_bank_summary_keeps_extra_keys(self):
        """Test unknown extracted keys survive normalization."""
        summary = build_bank_summary({
            "bank_name": "SBI",
            "ifsc": "SBIN0001",
            "bank_transactions": [{"narration": "NEFT", "credit_amount": "5"}],
        })
        assert summary.model_extra["ifsc"] == "SBIN0001"
        assert summary.bank_transactions[0].description == "NEFT"
        assert summary.bank_transactions[0].credit == Decimal("5")


class TestMapApprovedVoucher:
    """Tests for map_approved_voucher."""

    def test_maps_summary_fields(self):
        """Test id, date, amount and party come from the summary."""
        pending = Voucher(
            id="PENDING_1",
            detected_type="Sales Invoice",
            summary={
                "invoice_no": "INV-9",
                "date": "01/04/2024",
                "grand_total": "₹11,800",
                "customer_name": "Acme",
                "items": [{"name": "Widget"}, "junk"],
            },
        )
        mapped = map_approved_voucher(pending)
        assert mapped.id == "INV-9"
        assert mapped.date == "2024-04-01"
        assert mapped.amount == Decimal("11800")
        assert mapped.party == "Acme"
        assert mapped.items == [{"name": "Widget"}]
        assert mapped.status == VoucherStatus.APPROVED
        assert mapped.kind == VoucherKind.SALES

    def test_amount_fallbacks(self):
        """Test total_amount then total are used."""
        assert map_approved_voucher(Voucher(id="A", summary={"total_amount": "50"})).amount == Decimal("50")
        assert map_approved_voucher(Voucher(id="B", summary={"total": "7"})).amount == Decimal("7")
        assert map_approved_voucher(Voucher(id="C")).amount == Decimal("0")

    def test_unknown_party(self):
        """Test a voucher without any party field."""
        assert map_approved_voucher(Voucher(id="A")).party == "Unknown"


class TestPostApprovedVoucher:
    """Tests for post_approved_voucher."""

    def test_new_customer_ledger(self):
        """Test a sale to an unseen party creates a debtor ledger."""
        ledgers = post_approved_voucher([], posted("INV-1", "Acme", "11800", VoucherKind.SALES))
        assert len(ledgers) == 1
        ledger = ledgers[0]
        assert ledger.group == LedgerGroup.SUNDRY_DEBTORS
        assert ledger.type == PartyType.CUSTOMER
        assert ledger.balance == Decimal("11800")

    def test_new_vendor_ledger(self):
        """Test a purchase from an unseen party creates a creditor ledger."""
        ledgers = post_approved_voucher([], posted("B-1", "Steel Co", "5000", VoucherKind.PURCHASE))
        assert ledgers[0].group == LedgerGroup.SUNDRY_CREDITORS
        assert ledgers[0].type == PartyType.VENDOR
        assert ledgers[0].balance == Decimal("-5000")

    def test_existing_ledger_is_updated(self):
        """Test later vouchers are prepended and move the balance."""
        ledgers = post_approved_voucher([], posted("INV-1", "Acme", "100", VoucherKind.SALES))
        ledgers = post_approved_voucher(ledgers, posted("CN-1", "Acme", "30", VoucherKind.OTHER))
        ledger = ledgers[0]
        assert ledger.balance == Decimal("70")
        assert [tx.id for tx in ledger.transactions] == ["CN-1", "INV-1"]

    def test_balance_invariant(self):
        """Test balance always equals the replayed transactions."""
        vouchers = [
            posted(f"V{i}", "Acme", str(10 * (i + 1)), VoucherKind.SALES if i % 2 else VoucherKind.PURCHASE)
            for i in range(8)
        ]
        ledgers = rebuild_ledgers([], vouchers)
        for ledger in ledgers:
            assert ledger.balance == ledger.derived_balance()

    def test_posting_twice_is_a_no_op(self):
        """Test the same voucher id is never posted twice."""
        voucher = posted("INV-1", "Acme", "100", VoucherKind.SALES)
        once = post_approved_voucher([], voucher)
        twice = post_approved_voucher(once, voucher)
        assert twice == once
        assert len(twice[0].transactions) == 1

    def test_unknown_party_is_skipped(self):
        """Test vouchers without a party touch no ledger."""
        assert post_approved_voucher([], posted("X", "Unknown", "10", VoucherKind.SALES)) == []

    def test_input_is_not_mutated(self):
        """Test a new list is returned and the old one is untouched."""
        original = post_approved_voucher([], posted("INV-1", "Acme", "100", VoucherKind.SALES))
        post_approved_voucher(original, posted("INV-2", "Acme", "50", VoucherKind.SALES))
        assert original[0].balance == Decimal("100")
        assert len(original[0].transactions) == 1


class TestAddLedger:
    """Tests for manually created ledgers."""

    def test_opening_balance(self):
        """Test a manual ledger keeps its opening balance."""
        ledgers = add_ledger([], "Petty Vendor", LedgerGroup.SUNDRY_CREDITORS, PartyType.VENDOR, "2,500")
        ledger = ledgers[0]
        assert ledger.balance == Decimal("2500")
        assert ledger.opening_balance == Decimal("2500")
        assert ledger.transactions == []
        assert ledger.status == "Verified"

    def test_invariant_holds_after_posting(self):
        """Test postings onto a manual ledger keep the invariant."""
        ledgers = add_ledger([], "Acme", opening_balance="500")
        ledgers = post_approved_voucher(ledgers, posted("INV-1", "Acme", "100", VoucherKind.SALES))
        assert ledgers[0].balance == Decimal("600")
        assert ledgers[0].balance == ledgers[0].derived_balance()

    def test_duplicate_name(self):
        """Test a second ledger with the same name is rejected."""
        ledgers = add_ledger([], "Acme")
        with pytest.raises(LedgerError):
            add_ledger(ledgers, "Acme")

    def test_empty_name(self):
        """Test a blank name is rejected."""
        with pytest.raises(LedgerError):
            add_ledger([], "   ")


class TestDashboardMetrics:
    """Tests for compute_dashboard_metrics."""

    def test_sums_posted_vouchers(self):
        """Test sales and purchases are summed with their tax."""
        vouchers = [
            posted("S1", "Acme", "11800", VoucherKind.SALES, tax="1800"),
            posted("P1", "Steel", "5000", VoucherKind.PURCHASE, tax="900"),
            posted("O1", "Misc", "100", VoucherKind.OTHER, tax="10"),
        ]
        metrics = compute_dashboard_metrics(vouchers, [], DashboardImpact())
        assert metrics.sales == Decimal("11800")
        assert metrics.receivables == Decimal("11800")
        assert metrics.purchases == Decimal("5100")
        assert metrics.payables == Decimal("5100")
        assert metrics.gst_output == Decimal("1800")
        assert metrics.gst_input == Decimal("910")

    def test_falls_back_to_impact(self):
        """Test impact values are used when the books are empty."""
        impact = DashboardImpact(receivables=1, payables=2, gst_input=3, gst_output=4, cash_balance=5)
        metrics = compute_dashboard_metrics([], [], impact)
        assert metrics.receivables == Decimal("1")
        assert metrics.payables == Decimal("2")
        assert metrics.gst_input == Decimal("3")
        assert metrics.gst_output == Decimal("4")
        assert metrics.cash_balance == Decimal("5")

    def test_bank_balance_from_latest_statement(self):
        """Test the first bank statement supplies the balance when impact has none."""
        statement = BankStatement(id="BANK_1", summary=BankStatementSummary(balance=Decimal("777")))
        metrics = compute_dashboard_metrics([], [statement], DashboardImpact())
        assert metrics.bank_balance == Decimal("777")

        metrics = compute_dashboard_metrics([], [statement], DashboardImpact(bank_balance=10))
        assert metrics.bank_balance == Decimal("10")


class TestReconcilePortal:
    """Tests for reconcile_portal."""

    def test_within_tolerance_is_matched(self):
        """Test a 0.50 difference is a match."""
        rows = reconcile_portal(
            [posted("INV-1", "Steel", "1000", VoucherKind.PURCHASE)],
            [portal("INV-1", "1000.50")],
        )
        assert rows[0].status == ReconciliationStatus.MATCHED
        assert rows[0].diff == Decimal("-0.50")

    def test_outside_tolerance_is_mismatch(self):
        """Test a 50 difference is a mismatch."""
        rows = reconcile_portal(
            [posted("INV-1", "Steel", "1000", VoucherKind.PURCHASE)],
            [portal("INV-1", "1050")],
        )
        assert rows[0].status == ReconciliationStatus.MISMATCH
        assert rows[0].diff == Decimal("-50")

    def test_missing_on_either_side(self):
        """Test unmatched invoices on both sides."""
        rows = reconcile_portal(
            [posted("INV-1", "Steel", "1000", VoucherKind.PURCHASE)],
            [portal("INV-2", "300")],
        )
        by_invoice = {row.invoice_no: row for row in rows}
        assert by_invoice["INV-1"].status == ReconciliationStatus.MISSING_IN_PORTAL
        assert by_invoice["INV-1"].portal_amount == Decimal("0")
        assert by_invoice["INV-2"].status == ReconciliationStatus.MISSING_IN_BOOKS
        assert by_invoice["INV-2"].diff == Decimal("-300")
        assert [row.invoice_no for row in rows] == ["INV-1", "INV-2"]

    def test_only_purchases_are_books(self):
        """Test sales never enter the reconciliation."""
        rows = reconcile_portal([posted("S1", "Acme", "10", VoucherKind.SALES)], [])
        assert rows == []

    def test_summary_counts_every_status(self):
        """Test the summary includes zero counts."""
        rows = reconcile_portal(
            [posted("INV-1", "Steel", "1000", VoucherKind.PURCHASE)],
            [portal("INV-1", "1000")],
        )
        counts = summarize_reconciliation(rows)
        assert counts["Matched"] == 1
        assert counts["Mismatch"] == 0
        assert counts["Missing in Books"] == 0


class TestSimulatedPortalFeed:
    """Tests for simulate_portal_feed."""

    def test_always_reports_extra_invoice(self):
        """Test INV-9999 is always present and missing in books."""
        entries = simulate_portal_feed([], random.Random(1))
        assert [e.invoice_no for e in entries] == ["INV-9999"]
        assert entries[0].total == Decimal("5900.00")

    def test_entries_come_from_purchases(self):
        """Test every generated entry matches a purchase voucher."""
        books = [posted(f"P{i}", "Steel", "1000", VoucherKind.PURCHASE) for i in range(20)]
        books.append(posted("S1", "Acme", "1000", VoucherKind.SALES))
        entries = simulate_portal_feed(books, random.Random(42))

        book_ids = {v.id for v in books if v.kind == VoucherKind.PURCHASE}
        for entry in entries[:-1]:
            assert entry.invoice_no in book_ids
            assert entry.total in (Decimal("1000"), Decimal("1010"))
            assert entry.taxable == (entry.total * Decimal("0.82")).quantize(Decimal("0.01"))


class TestGstBreakdown:
    """Tests for compute_gst_breakdown."""

    def test_payable_and_split(self):
        """Test net payable and the CGST/SGST halves."""
        vouchers = [
            posted("S1", "Acme", "11800", VoucherKind.SALES, tax="1800"),
            posted("P1", "Steel", "5900", VoucherKind.PURCHASE, tax="900"),
        ]
        gst = compute_gst_breakdown(vouchers, DashboardImpact())
        assert gst.payable == Decimal("900")
        assert gst.cgst == Decimal("900")
        assert gst.sgst == Decimal("900")
        assert gst.status == "Action Required"

    def test_input_exceeds_output(self):
        """Test payable never goes negative."""
        vouchers = [posted("P1", "Steel", "5900", VoucherKind.PURCHASE, tax="900")]
        gst = compute_gst_breakdown(vouchers, DashboardImpact())
        assert gst.payable == Decimal("0")
        assert gst.status == "Compliant"
