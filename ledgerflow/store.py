"""
Account Store

Holds every collection the application works on and mirrors them to the
local cache.

DESIGN DECISION: State is replaced, never edited in place. Every mutation
builds a new list, assigns it, then persists the touched keys. Between
two awaits the store is always consistent with the cache.

CRITICAL: The local cache is the system of record. A read failure for
one key yields an empty collection for that key only; it never blocks
startup.
"""

from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from ledgerflow.models.records import (
    BankStatement,
    CompanySettings,
    DashboardImpact,
    Document,
    Ledger,
    PortalEntry,
    TeamMember,
    UiVisibility,
    Voucher,
    default_team,
)
from ledgerflow.services.storage import CacheError, LocalCacheInterface
from ledgerflow.validation import CacheSanitizer, SanitizeReport

logger = structlog.get_logger(__name__)


# State field -> cache key
CACHE_FIELDS = {
    "posted_vouchers": "postedVouchers",
    "bank_statements": "bankStatements",
    "pending_vouchers": "pendingVouchers",
    "ledgers": "ledgers",
    "company_settings": "companySettings",
    "team_members": "teamMembers",
    "ui_visibility": "uiVisibility",
    "dashboard_impact": "dashboardImpact",
    "webhook_data": "webhookData",
}

# Collections whose records may carry an inline file
_FILE_FIELDS = ("pending_vouchers", "bank_statements", "posted_vouchers")


class AccountState(BaseModel):
    """Everything the dashboard shows, in one place."""

    pending_vouchers: list[Document] = Field(default_factory=list)
    posted_vouchers: list[Voucher] = Field(default_factory=list)
    bank_statements: list[BankStatement] = Field(default_factory=list)
    ledgers: list[Ledger] = Field(default_factory=list)
    company_settings: CompanySettings = Field(default_factory=CompanySettings)
    team_members: list[TeamMember] = Field(default_factory=default_team)
    ui_visibility: UiVisibility = Field(default_factory=UiVisibility)
    dashboard_impact: DashboardImpact = Field(default_factory=DashboardImpact)
    webhook_data: Optional[dict[str, Any]] = None

    # Simulated GST portal feed; never persisted
    portal_entries: list[PortalEntry] = Field(default_factory=list)

    def find_pending(self, document_id: str) -> Optional[Document]:
        return next((d for d in self.pending_vouchers if d.id == document_id), None)


class AccountStore:
    """
    Owns the AccountState and its cache mirror.

    Usage:
        store = AccountStore(JsonFileCache())
        reports = store.hydrate()
        store.update(ledgers=new_ledgers)
    """

    def __init__(
        self,
        cache: LocalCacheInterface,
        sanitizer: Optional[CacheSanitizer] = None,
    ):
        self._cache = cache
        self._sanitizer = sanitizer or CacheSanitizer()
        self.state = AccountState()

    def _read(self, key: str) -> tuple[Any, Optional[str]]:
        try:
            return self._cache.get(key), None
        except CacheError as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None, str(e)

    def hydrate(self) -> list[SanitizeReport]:
        """
        Load every collection from the cache.

        Returns:
            One report per key that was damaged or unreadable
        """
        sanitize = self._sanitizer
        loaded: dict[str, Any] = {}
        reports: list[SanitizeReport] = []

        for field, key in CACHE_FIELDS.items():
            raw, error = self._read(key)

            if field == "pending_vouchers":
                value, report = sanitize.documents(key, raw)
            elif field == "posted_vouchers":
                value, report = sanitize.vouchers(key, raw)
            elif field == "bank_statements":
                value, report = sanitize.bank_statements(key, raw)
            elif field == "ledgers":
                value, report = sanitize.ledgers(key, raw)
            elif field == "team_members":
                value, report = sanitize.model_list(key, raw, TeamMember)
                if raw is None:
                    value = default_team()
            elif field == "company_settings":
                value, report = sanitize.model(key, raw, CompanySettings)
            elif field == "ui_visibility":
                value, report = sanitize.model(key, raw, UiVisibility)
            elif field == "dashboard_impact":
                value, report = sanitize.model(key, raw, DashboardImpact)
            else:
                value = raw if isinstance(raw, dict) else None
                report = SanitizeReport(key=key)

            if error:
                report.issues.append(error)
            if not report.is_clean:
                reports.append(report)
            loaded[field] = value

        self.state = AccountState(**loaded)
        logger.info(
            "store_hydrated",
            pending=len(self.state.pending_vouchers),
            posted=len(self.state.posted_vouchers),
            bank_statements=len(self.state.bank_statements),
            ledgers=len(self.state.ledgers),
        )
        return reports

    def _dump(self, state: AccountState, field: str, strip_files: bool = False) -> Any:
        value = getattr(state, field)
        if isinstance(value, list):
            exclude = {"file_data"} if strip_files else None
            return [item.model_dump(mode="json", exclude=exclude) for item in value]
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json")
        return value

    def _write(self, state: AccountState, field: str) -> None:
        key = CACHE_FIELDS[field]
        try:
            self._cache.set(key, self._dump(state, field))
        except CacheError as e:
            if field not in _FILE_FIELDS:
                raise
            logger.warning("cache_write_retry_without_files", key=key, error=str(e))
            self._cache.set(key, self._dump(state, field, strip_files=True))

    def persist(self, *fields: str) -> None:
        """
        Write the given state fields (all cached fields by default).

        A document collection that cannot be written is retried once
        without inline file data.

        Raises:
            CacheError: If a field still cannot be written
        """
        for field in fields or tuple(CACHE_FIELDS):
            self._write(self.state, field)

    def update(self, **changes: Any) -> None:
        """
        Replace state fields and persist the cached ones.

        All or nothing: the in-memory state only changes once every cached
        field is written. Keys written before a failure are rewritten with
        their previous value.

        Raises:
            AttributeError: If a field does not exist
            CacheError: If a cached field cannot be written
        """
        for field in changes:
            if not hasattr(self.state, field):
                raise AttributeError(f"Unknown state field: {field}")

        candidate = self.state.model_copy(update=changes)
        written: list[str] = []
        try:
            for field in changes:
                if field in CACHE_FIELDS:
                    self._write(candidate, field)
                    written.append(field)
        except CacheError:
            self._rollback(written)
            raise

        self.state = candidate

    def _rollback(self, fields: list[str]) -> None:
        for field in fields:
            try:
                self._write(self.state, field)
            except CacheError as e:
                logger.error("cache_rollback_failed", key=CACHE_FIELDS[field], error=str(e))

    def reset(self) -> None:
        """Drop every collection and clear the cache namespace."""
        self.state = AccountState()
        self._cache.clear()
        logger.info("store_reset")
