"""
Shared fixtures.

No real API calls in tests: the webhook is an httpx.MockTransport, the
remote store is in memory and the cache lives under tmp_path.
"""

import json
from typing import Optional

import httpx
import pytest

from ledgerflow.audit import AuditLogger
from ledgerflow.config import AppSettings
from ledgerflow.models.records import DashboardImpact, RemoteVoucherRow, VoucherStatus
from ledgerflow.orchestrator import AccountFlow
from ledgerflow.services.storage import (
    JsonFileCache,
    LocalCacheAuditStorage,
    NotFoundError,
    RemoteStoreInterface,
    StorageError,
)
from ledgerflow.services.webhook import DocumentWebhookClient
from ledgerflow.store import AccountStore

WEBHOOK_URL = "https://webhook.test/extract"


class InMemoryRemoteStore(RemoteStoreInterface):
    """Remote store kept in lists; set `fail` to simulate an outage."""

    def __init__(self, rows: Optional[list[RemoteVoucherRow]] = None):
        self.rows: list[RemoteVoucherRow] = list(rows or [])
        self.impact: Optional[DashboardImpact] = None
        self.fail = False
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail:
            raise StorageError(f"{operation} unavailable")

    async def insert_voucher(self, row: RemoteVoucherRow) -> bool:
        self._check("insert_voucher")
        self.rows.append(row)
        return True

    async def update_voucher_status(self, voucher_id: str, status: VoucherStatus) -> bool:
        self._check("update_voucher_status")
        matched = [row for row in self.rows if row.voucher_id == voucher_id]
        if not matched:
            raise NotFoundError(f"Voucher not found: {voucher_id}")
        self.rows = [
            row.model_copy(update={"status": status}) if row.voucher_id == voucher_id else row
            for row in self.rows
        ]
        return True

    async def list_vouchers(self) -> list[RemoteVoucherRow]:
        self._check("list_vouchers")
        return sorted(self.rows, key=lambda r: r.created_at, reverse=True)

    async def delete_all_vouchers(self) -> int:
        self._check("delete_all_vouchers")
        count = len(self.rows)
        self.rows = []
        return count

    async def get_dashboard_impact(self) -> Optional[DashboardImpact]:
        self._check("get_dashboard_impact")
        return self.impact

    async def upsert_dashboard_impact(self, impact: DashboardImpact) -> bool:
        self._check("upsert_dashboard_impact")
        self.impact = impact
        return True


def webhook_transport(body, status_code: int = 200, requests: Optional[list] = None):
    """MockTransport answering every POST with `body` (dict → JSON, str → raw)."""
    content = json.dumps(body) if not isinstance(body, str) else body

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, text=content)

    return httpx.MockTransport(handler)


def make_webhook(body, status_code: int = 200, requests: Optional[list] = None) -> DocumentWebhookClient:
    return DocumentWebhookClient(
        url=WEBHOOK_URL,
        timeout_seconds=5,
        source="dashboard",
        transport=webhook_transport(body, status_code, requests),
    )


def sales_payload(invoice_no="INV-001", party="Acme", total="11800", tax="1800"):
    return {
        "detected_type": "Sales Invoice",
        "summary": {
            "invoice_no": invoice_no,
            "party": party,
            "grand_total": total,
            "tax_amount": tax,
            "date": "15/03/2024",
        },
    }


def purchase_payload(invoice_no="BILL-7", party="Steel Co", total="5000", tax="900"):
    return {
        "detected_type": "Purchase Bill",
        "summary": {
            "invoice_no": invoice_no,
            "vendor_name": party,
            "total_amount": total,
            "tax_amount": tax,
            "date": "2024-03-20",
        },
    }


@pytest.fixture
def cache(tmp_path):
    return JsonFileCache(directory=str(tmp_path / "cache"), namespace="test")


@pytest.fixture
def store(cache):
    return AccountStore(cache)


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def audit_logger(cache):
    return AuditLogger(LocalCacheAuditStorage(cache, limit=100))


@pytest.fixture
def app_settings():
    return AppSettings(stage_dwell_seconds=0, posting_settle_seconds=0)


@pytest.fixture
def make_flow(store, remote, audit_logger, app_settings):
    """Build an AccountFlow whose webhook answers with the given body."""

    def _make(body=None, status_code: int = 200, requests: Optional[list] = None, **kwargs):
        options = dict(
            store=store,
            webhook_client=make_webhook(body if body is not None else {}, status_code, requests),
            remote_store=remote,
            audit_logger=audit_logger,
            app_settings=app_settings,
        )
        options.update(kwargs)
        return AccountFlow(**options)

    return _make
