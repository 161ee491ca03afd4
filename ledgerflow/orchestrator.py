"""
Main Orchestrator for LedgerFlow

This module ties together all the components and defines the
end-to-end flows for:
1. Intake (file → webhook → classify → pending review)
2. Approval (pending → posted voucher / bank statement → ledgers)
3. Startup (local cache → remote merge)
4. GST reconciliation and dashboard figures

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is posted to a ledger without explicit approval
- Local state is committed before any remote write is attempted
- A remote failure never undoes a local commit
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
import base64
import random
import time
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from ledgerflow.audit import AuditLogger, create_correlation_id
from ledgerflow.classification import Classification, classify_payload
from ledgerflow.config import AppSettings, get_settings
from ledgerflow.intake import PROCESSING_STAGES, IntakeStateMachine
from ledgerflow.ledger import (
    UNKNOWN_PARTY,
    DashboardMetrics,
    GstBreakdown,
    add_ledger,
    build_bank_summary,
    compute_dashboard_metrics,
    compute_gst_breakdown,
    find_ledger,
    map_approved_voucher,
    post_approved_voucher,
    purchase_books,
    reconcile_portal,
    simulate_portal_feed,
)
from ledgerflow.models.records import (
    BankStatement,
    CompanySettings,
    DashboardImpact,
    Document,
    IntakeState,
    Ledger,
    LedgerGroup,
    PartyType,
    PortalEntry,
    ReconciliationRow,
    RemoteVoucherRow,
    UiVisibility,
    Voucher,
    VoucherStatus,
)
from ledgerflow.normalization import ZERO, parse_amount
from ledgerflow.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    JsonFileCache,
    LocalCacheAuditStorage,
    RemoteStoreInterface,
    StorageError,
)
from ledgerflow.services.webhook import DocumentWebhookClient, WebhookError
from ledgerflow.store import AccountStore
from ledgerflow.sync import RemoteSyncQueue, merge_remote_snapshot
from ledgerflow.validation import SanitizeReport

logger = structlog.get_logger(__name__)

EDITABLE_DASHBOARD_FIELDS = ("cash_balance", "bank_balance")

Sleep = Callable[[float], Awaitable[Any]]


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _data_url(file_bytes: bytes, content_type: str) -> str:
    encoded = base64.b64encode(file_bytes).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


class AccountFlow:
    """
    Orchestrates intake, approval and reporting.

    Flow:
    1. Upload → POST to the webhook (uploading)
    2. Progress → ocr, detecting, mapping, voucher_creation
    3. Classify → bank statement or voucher
    4. Queue → pending review (PAUSE - require approval)
    5. Approve → posting, ledgers updated, posted

    Approval (step 5) is MANDATORY.
    The system NEVER auto-posts.
    """

    def __init__(
        self,
        store: AccountStore,
        webhook_client: Optional[DocumentWebhookClient] = None,
        remote_store: Optional[RemoteStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        state_machine: Optional[IntakeStateMachine] = None,
        sync_queue: Optional[RemoteSyncQueue] = None,
        app_settings: Optional[AppSettings] = None,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._store = store
        self._webhook = webhook_client or DocumentWebhookClient()
        self._remote = remote_store
        self._audit_logger = audit_logger
        self._machine = state_machine or IntakeStateMachine()
        self._sync = sync_queue or RemoteSyncQueue(audit_logger)
        self._settings = app_settings or get_settings().app
        self._sleep = sleep
        self._rng = rng

    @property
    def store(self) -> AccountStore:
        return self._store

    @property
    def state_machine(self) -> IntakeStateMachine:
        return self._machine

    @property
    def status(self) -> IntakeState:
        return self._machine.state

    @property
    def sync_queue(self) -> RemoteSyncQueue:
        return self._sync

    # -------------------------------------------------------------------------
    # Remote mirror
    # -------------------------------------------------------------------------

    def _enqueue_remote(self, name: str, factory: Callable[[RemoteStoreInterface], Awaitable[Any]]) -> None:
        remote = self._remote
        if remote is None:
            return
        self._sync.enqueue(name, lambda: factory(remote))

    def _sync_impact(self, impact: DashboardImpact) -> None:
        self._enqueue_remote(
            "upsert_dashboard_impact",
            lambda remote: remote.upsert_dashboard_impact(impact),
        )

    async def flush_remote(self) -> int:
        """
        Wait for outstanding remote writes and retry earlier failures once.

        Returns:
            Number of remote writes still failing
        """
        await self._sync.drain()
        if self._sync.failed:
            return await self._sync.retry_failed()
        return 0

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def startup(self) -> list[SanitizeReport]:
        """
        Hydrate from the local cache, then merge the remote snapshot.

        Returns:
            Reports for every cached collection that was damaged
        """
        reports = self._store.hydrate()
        if self._audit_logger:
            for report in reports:
                await self._audit_logger.log_cache_corrupted(
                    key=report.key,
                    dropped=report.dropped,
                    error_message="; ".join(report.issues) or None,
                )

        if self._remote is None:
            return reports

        try:
            rows = await self._remote.list_vouchers()
            impact = await self._remote.get_dashboard_impact()
        except StorageError as e:
            logger.warning("remote_fetch_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_remote_sync_failed("startup_merge", str(e))
            return reports

        merged = merge_remote_snapshot(self._store.state, rows, impact)
        self._store.update(
            pending_vouchers=merged.pending_vouchers,
            posted_vouchers=merged.posted_vouchers,
            bank_statements=merged.bank_statements,
            dashboard_impact=merged.dashboard_impact,
            ledgers=merged.ledgers,
        )

        if self._audit_logger:
            await self._audit_logger.log_remote_merged(
                pending=len(merged.pending_vouchers),
                posted=len(merged.posted_vouchers),
                bank_statements=len(merged.bank_statements),
            )
        return reports

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def _apply_payload_side_effects(
        self,
        classification: Classification,
        changes: dict[str, Any],
    ) -> None:
        """Last writer wins: the payload replaces visibility and impact wholesale."""
        try:
            if classification.ui_visibility is not None:
                changes["ui_visibility"] = UiVisibility.model_validate(
                    classification.ui_visibility
                )
            if classification.dashboard_impact is not None:
                changes["dashboard_impact"] = DashboardImpact.model_validate(
                    classification.dashboard_impact
                )
        except ValidationError as e:
            logger.warning("payload_side_effects_invalid", error=str(e))

    def _build_document(
        self,
        classification: Classification,
        file_name: str,
        file_data: Optional[str],
        impact: DashboardImpact,
    ) -> Document:
        dashboard_impact = classification.dashboard_impact or {}

        if classification.is_bank_statement:
            return BankStatement(
                id=f"BANK_{_epoch_ms()}",
                file_name=file_name,
                file_data=file_data,
                summary=build_bank_summary(classification.summary, impact),
                dashboard_impact=dashboard_impact,
            )

        summary = classification.summary if isinstance(classification.summary, dict) else {}
        return Voucher(
            id=classification.invoice_no or f"PENDING_{_epoch_ms()}",
            file_name=file_name,
            file_data=file_data,
            detected_type=classification.detected_type,
            kind=classification.kind,
            summary=summary,
            dashboard_impact=dashboard_impact,
        )

    async def process_upload(
        self,
        file_bytes: bytes,
        file_name: str,
        content_type: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Document], bool, str]:
        """
        Send a document for extraction and queue it for review.

        Returns:
            (document, ok, message)

        If ok is False, the upload failed and nothing was queued. A newer
        upload or approval started meanwhile does not cancel this one; the
        document is still queued and only the intake status is left alone.
        """
        correlation_id = correlation_id or create_correlation_id()
        content_type = content_type or "application/octet-stream"

        run = self._machine.begin(IntakeState.UPLOADING)
        if self._audit_logger:
            await self._audit_logger.log_document_uploaded(
                file_name=file_name,
                file_size=len(file_bytes),
                correlation_id=correlation_id,
            )

        try:
            payload, malformed = await self._webhook.submit(
                file_bytes, file_name, content_type
            )
        except WebhookError as e:
            self._machine.fail(str(e), run)
            if self._audit_logger:
                await self._audit_logger.log_upload_failed(
                    file_name=file_name,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return None, False, str(e)

        if malformed and self._audit_logger:
            await self._audit_logger.log_payload_malformed(
                file_name=file_name,
                correlation_id=correlation_id,
            )

        for stage in PROCESSING_STAGES:
            await self._sleep(self._settings.stage_dwell_seconds)
            self._machine.advance(run, stage)

        try:
            document = self._queue_document(
                payload, file_bytes, file_name, content_type
            )
        except StorageError as e:
            self._machine.fail(str(e), run)
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="cache_write_failed",
                    error_message=str(e),
                    details={"file_name": file_name},
                    correlation_id=correlation_id,
                )
            return None, False, str(e)

        self._machine.advance(run, IntakeState.PENDING_REVIEW)

        if self._audit_logger:
            await self._audit_logger.log_document_classified(
                document_id=document.id,
                detected_type=document.detected_type,
                kind=document.kind.value,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_document_queued(
                document_id=document.id,
                pending_count=len(self._store.state.pending_vouchers),
                correlation_id=correlation_id,
            )

        return document, True, f"{document.detected_type} ready for review"

    def _queue_document(
        self,
        payload: dict[str, Any],
        file_bytes: bytes,
        file_name: str,
        content_type: str,
    ) -> Document:
        """Commit one classified payload locally, then schedule the remote insert."""
        state = self._store.state
        classification = classify_payload(payload)

        changes: dict[str, Any] = {"webhook_data": payload}
        self._apply_payload_side_effects(classification, changes)
        impact = changes.get("dashboard_impact", state.dashboard_impact)

        file_data: Optional[str] = _data_url(file_bytes, content_type)
        if len(file_data) >= self._settings.max_inline_file_bytes:
            file_data = None

        document = self._build_document(classification, file_name, file_data, impact)
        changes["pending_vouchers"] = [document, *state.pending_vouchers]
        self._store.update(**changes)

        if "dashboard_impact" in changes:
            self._sync_impact(changes["dashboard_impact"])
        row = RemoteVoucherRow.from_document(document)
        self._enqueue_remote("insert_voucher", lambda remote: remote.insert_voucher(row))

        logger.info(
            "document_queued",
            document_id=document.id,
            kind=document.kind.value,
            file_name=file_name,
        )
        return document

    # -------------------------------------------------------------------------
    # Approval
    # -------------------------------------------------------------------------

    async def approve_voucher(
        self,
        voucher_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Document]:
        """
        Approve a pending document and post it.

        CRITICAL: This is called ONLY after explicit user approval.

        Returns:
            The posted voucher or bank statement. None for an unknown id, or
            when the cache write failed and nothing was posted.
            Approving the same document twice posts it once.
        """
        state = self._store.state
        document = state.find_pending(voucher_id)
        if document is None:
            logger.warning("approve_unknown_voucher", voucher_id=voucher_id)
            return None

        correlation_id = correlation_id or create_correlation_id()
        run = self._machine.begin(IntakeState.POSTING)
        if self._audit_logger:
            await self._audit_logger.log_voucher_approved(
                voucher_id=voucher_id,
                detected_type=document.detected_type,
                correlation_id=correlation_id,
            )

        await self._sleep(self._settings.posting_settle_seconds)

        # State may have moved on while we waited
        state = self._store.state
        changes: dict[str, Any] = {}
        ledger_event: Optional[tuple[str, bool]] = None

        if isinstance(document, BankStatement):
            posted: Document = document.model_copy(
                update={"status": VoucherStatus.APPROVED}
            )
            if not any(s.id == posted.id for s in state.bank_statements):
                changes["bank_statements"] = [posted, *state.bank_statements]
        else:
            posted = map_approved_voucher(document)
            if not any(v.id == posted.id for v in state.posted_vouchers):
                changes["posted_vouchers"] = [*state.posted_vouchers, posted]

            existing = find_ledger(state.ledgers, posted.party or UNKNOWN_PARTY)
            if posted.party != UNKNOWN_PARTY and not (
                existing and existing.has_transaction(posted.id)
            ):
                changes["ledgers"] = post_approved_voucher(state.ledgers, posted)
                ledger_event = (posted.party, existing is None)

        changes["pending_vouchers"] = [
            d.model_copy(update={"status": VoucherStatus.APPROVED}) if d.id == voucher_id else d
            for d in state.pending_vouchers
        ]
        try:
            self._store.update(**changes)
        except StorageError as e:
            self._machine.fail(str(e), run)
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="cache_write_failed",
                    error_message=str(e),
                    details={"voucher_id": voucher_id},
                    correlation_id=correlation_id,
                )
            return None

        self._enqueue_remote(
            "update_voucher_status",
            lambda remote: remote.update_voucher_status(voucher_id, VoucherStatus.APPROVED),
        )
        self._machine.advance(run, IntakeState.POSTED)

        if self._audit_logger:
            if isinstance(posted, BankStatement):
                if "bank_statements" in changes:
                    await self._audit_logger.log_bank_statement_posted(
                        statement_id=posted.id,
                        bank_name=posted.summary.bank_name,
                        balance=str(posted.summary.balance),
                        correlation_id=correlation_id,
                    )
            elif ledger_event is not None:
                party, created = ledger_event
                await self._audit_logger.log_ledger_posted(
                    party=party,
                    voucher_id=posted.id,
                    amount=str(posted.amount),
                    created=created,
                    correlation_id=correlation_id,
                )

        return posted

    # -------------------------------------------------------------------------
    # Ledgers, settings and dashboard
    # -------------------------------------------------------------------------

    async def add_ledger(
        self,
        name: str,
        group: LedgerGroup = LedgerGroup.SUNDRY_DEBTORS,
        party_type: PartyType = PartyType.CUSTOMER,
        opening_balance: Any = ZERO,
    ) -> Ledger:
        """
        Create a manual ledger.

        Raises:
            LedgerError: If the name is empty or already taken
        """
        ledgers = add_ledger(
            self._store.state.ledgers, name, group, party_type, opening_balance
        )
        self._store.update(ledgers=ledgers)
        ledger = ledgers[-1]

        if self._audit_logger:
            await self._audit_logger.log_ledger_posted(
                party=ledger.name,
                voucher_id="",
                amount=str(ledger.opening_balance),
                created=True,
                correlation_id=create_correlation_id(),
            )
        return ledger

    def update_company_settings(self, **changes: Any) -> CompanySettings:
        current = self._store.state.company_settings.model_dump()
        settings = CompanySettings.model_validate({**current, **changes})
        self._store.update(company_settings=settings)
        return settings

    async def set_dashboard_value(self, field: str, value: Any) -> bool:
        """
        Manually set the cash or bank balance.

        Returns:
            False when the value parses to zero or less (ignored)

        Raises:
            ValueError: If the field is not editable
        """
        if field not in EDITABLE_DASHBOARD_FIELDS:
            raise ValueError(f"Dashboard field is not editable: {field}")

        amount = parse_amount(value)
        if amount <= ZERO:
            return False

        impact = self._store.state.dashboard_impact.model_copy(update={field: amount})
        self._store.update(dashboard_impact=impact)
        self._sync_impact(impact)

        if self._audit_logger:
            await self._audit_logger.log_dashboard_updated(field=field, value=str(amount))
        return True

    def metrics(self) -> DashboardMetrics:
        state = self._store.state
        return compute_dashboard_metrics(
            state.posted_vouchers, state.bank_statements, state.dashboard_impact
        )

    # -------------------------------------------------------------------------
    # GST
    # -------------------------------------------------------------------------

    async def fetch_portal_feed(self) -> list[PortalEntry]:
        """Load a simulated GST portal feed built from the books."""
        entries = simulate_portal_feed(self._store.state.posted_vouchers, self._rng)
        self._store.update(portal_entries=entries)
        if self._audit_logger:
            await self._audit_logger.log_portal_fetched(len(entries))
        return entries

    def reconcile_gst(self, tolerance: Optional[Decimal] = None) -> list[ReconciliationRow]:
        state = self._store.state
        return reconcile_portal(
            purchase_books(state.posted_vouchers),
            state.portal_entries,
            tolerance if tolerance is not None else self._settings.reconciliation_tolerance,
        )

    def gst_summary(self) -> GstBreakdown:
        state = self._store.state
        return compute_gst_breakdown(state.posted_vouchers, state.dashboard_impact)

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    async def clear_all(self) -> None:
        """
        Wipe remote and local data.

        Remote failures are logged and ignored; the local wipe always happens.
        """
        await self._sync.drain()

        if self._remote is not None:
            try:
                await self._remote.reset_dashboard_impact()
                deleted = await self._remote.delete_all_vouchers()
                logger.info("remote_cleared", deleted=deleted)
            except StorageError as e:
                logger.warning("remote_clear_failed", error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_remote_sync_failed("clear_all", str(e))

        self._store.reset()
        self._machine.reset()
        self._sync.failed.clear()

        if self._audit_logger:
            await self._audit_logger.log_data_cleared()


def create_app_components(
    use_storage: bool = True,
) -> tuple[AccountFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize the Google Sheets remote store.
                    Set to False to run on the local cache only.

    Returns:
        (account_flow, sheets_client)
    """
    cache = JsonFileCache()
    audit_logger = AuditLogger(LocalCacheAuditStorage(cache))

    sheets_client = None
    remote_store = None
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            remote_store = GoogleSheetsRemoteStore(sheets_client)
        except ValidationError as e:
            # Remote store not configured - continue on the local cache
            logger.warning("remote_store_not_configured", error=str(e))
            sheets_client = None

    flow = AccountFlow(
        store=AccountStore(cache),
        remote_store=remote_store,
        audit_logger=audit_logger,
    )
    return flow, sheets_client
