"""Tests for merging the remote snapshot and the remote sync queue."""

import asyncio
from decimal import Decimal

import pytest

from ledgerflow.models.records import (
    BankStatement,
    DashboardImpact,
    RemoteVoucherRow,
    Voucher,
    VoucherStatus,
)
from ledgerflow.store import AccountState
from ledgerflow.sync import RemoteSyncQueue, merge_by_id, merge_remote_snapshot


def remote_rows():
    return [
        RemoteVoucherRow(
            voucher_id="INV-1",
            type="Sales Invoice",
            party="Acme",
            amount="1000",
            summary={"invoice_no": "INV-1", "party": "Acme", "grand_total": "1000"},
            status=VoucherStatus.APPROVED,
        ),
        RemoteVoucherRow(
            voucher_id="BILL-2",
            type="Purchase Bill",
            summary={"invoice_no": "BILL-2", "vendor_name": "Steel Co", "total_amount": "400"},
        ),
        RemoteVoucherRow(
            voucher_id="BANK_3",
            type="Bank Statement",
            summary={"bank_name": "HDFC", "balance": "2500"},
            status=VoucherStatus.APPROVED,
        ),
    ]


class TestMergeById:
    """Tests for merge_by_id."""

    def test_incoming_first_local_wins(self):
        """Test remote-only items come first and local copies win."""
        local = [Voucher(id="A", amount="1"), Voucher(id="B", amount="2")]
        incoming = [Voucher(id="C", amount="3"), Voucher(id="A", amount="99")]

        merged = merge_by_id(local, incoming)

        assert [v.id for v in merged] == ["C", "A", "B"]
        assert merged[1].amount == Decimal("1")

    def test_empty_sides(self):
        """Test merging with nothing on either side."""
        local = [Voucher(id="A")]
        assert merge_by_id(local, []) == local
        assert [v.id for v in merge_by_id([], local)] == ["A"]


class TestMergeRemoteSnapshot:
    """Tests for merge_remote_snapshot."""

    def test_collections_are_merged(self):
        """Test each collection receives its remote rows."""
        merged = merge_remote_snapshot(AccountState(), remote_rows())

        assert [d.id for d in merged.pending_vouchers] == ["INV-1", "BILL-2", "BANK_3"]
        assert [v.id for v in merged.posted_vouchers] == ["INV-1"]
        assert [s.id for s in merged.bank_statements] == ["BANK_3"]
        assert isinstance(merged.bank_statements[0], BankStatement)

    def test_ledgers_rebuilt_from_approved(self):
        """Test approved remote vouchers reach the ledgers."""
        merged = merge_remote_snapshot(AccountState(), remote_rows())
        assert len(merged.ledgers) == 1
        assert merged.ledgers[0].name == "Acme"
        assert merged.ledgers[0].balance == Decimal("1000")

    def test_merge_is_idempotent(self):
        """Test merging the same snapshot twice changes nothing."""
        once = merge_remote_snapshot(AccountState(), remote_rows())
        twice = merge_remote_snapshot(once, remote_rows())

        assert [d.id for d in twice.pending_vouchers] == [d.id for d in once.pending_vouchers]
        assert len(twice.posted_vouchers) == 1
        assert twice.ledgers[0].balance == Decimal("1000")
        assert len(twice.ledgers[0].transactions) == 1

    def test_impact_replaced_only_when_present(self):
        """Test the remote impact overrides the local one when given."""
        state = AccountState(dashboard_impact=DashboardImpact(cash_balance=5))

        kept = merge_remote_snapshot(state, [])
        assert kept.dashboard_impact.cash_balance == Decimal("5")

        replaced = merge_remote_snapshot(state, [], DashboardImpact(cash_balance=9))
        assert replaced.dashboard_impact.cash_balance == Decimal("9")

    def test_input_state_untouched(self):
        """Test the original state is not modified."""
        state = AccountState()
        merge_remote_snapshot(state, remote_rows())
        assert state.pending_vouchers == []
        assert state.ledgers == []


class TestRemoteSyncQueue:
    """Tests for RemoteSyncQueue."""

    def test_successful_writes(self):
        """Test writes run and the queue drains."""
        calls = []

        async def scenario():
            queue = RemoteSyncQueue()

            async def write():
                calls.append("write")

            queue.enqueue("insert_voucher", write)
            queue.enqueue("insert_voucher", write)
            await queue.drain()
            return queue

        queue = asyncio.run(scenario())
        assert calls == ["write", "write"]
        assert queue.pending_count == 0
        assert queue.failed == []

    def test_failure_is_kept_and_retried(self):
        """Test a failed write is kept and succeeds on retry."""
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("offline")

        async def scenario():
            queue = RemoteSyncQueue()
            queue.enqueue("update_voucher_status", flaky)
            await queue.drain()
            failed = list(queue.failed)
            still_failing = await queue.retry_failed()
            return failed, still_failing, queue

        failed, still_failing, queue = asyncio.run(scenario())
        assert [item.name for item in failed] == ["update_voucher_status"]
        assert failed[0].error == "offline"
        assert still_failing == 0
        assert queue.failed == []
        assert len(attempts) == 2

    def test_failure_is_audited(self, audit_logger):
        """Test a failed write produces an audit event."""

        async def broken():
            raise RuntimeError("nope")

        async def scenario():
            queue = RemoteSyncQueue(audit_logger)
            queue.enqueue("delete_all_vouchers", broken)
            await queue.drain()
            return await audit_logger.recent()

        events = asyncio.run(scenario())
        assert events[0].event_type.value == "remote_sync_failed"

    def test_attempts_increase(self):
        """Test a write failing twice records the attempt count."""

        async def broken():
            raise RuntimeError("still down")

        async def scenario():
            queue = RemoteSyncQueue()
            queue.enqueue("upsert_dashboard_impact", broken)
            await queue.drain()
            await queue.retry_failed()
            return queue.failed

        failed = asyncio.run(scenario())
        assert failed[0].attempts == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
