"""
Cache Sanitizer

DESIGN DECISION: The local cache is trusted as the system of record, but
not blindly. Anything read back from it passes through here first:

STAGE 1 - SHAPE:
- Collections must be lists, records must be objects
- Documents need an id, ledgers need a name

STAGE 2 - COERCION:
- Ledger transactions are coerced to a list
- Balances and amounts are coerced to numbers
- Missing ledger group/type is inferred from the balance sign

IMPORTANT: A damaged record is dropped, never guessed at beyond the rules
above. Every drop is counted and reported so the caller can audit it.
"""

from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field, ValidationError

from ledgerflow.models.records import (
    BankStatement,
    Document,
    Ledger,
    LedgerGroup,
    PartyType,
    Voucher,
    document_from_dict,
)
from ledgerflow.normalization import ZERO, parse_amount

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SanitizeReport(BaseModel):
    """Outcome of sanitizing one cached collection."""

    key: str
    kept: int = 0
    dropped: int = 0
    issues: list[str] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return self.dropped == 0 and not self.issues


class CacheSanitizer:
    """
    Turns raw cached JSON back into models.

    Every method returns (value, report). The value is always usable:
    an empty collection or a default model when nothing survives.
    """

    def _records(self, key: str, raw: Any) -> tuple[list[dict], SanitizeReport]:
        report = SanitizeReport(key=key)
        if raw is None:
            return [], report
        if not isinstance(raw, list):
            report.issues.append(f"expected a list, got {type(raw).__name__}")
            return [], report

        records = []
        for entry in raw:
            if isinstance(entry, dict):
                records.append(entry)
            else:
                report.dropped += 1
        return records, report

    def _finish(self, report: SanitizeReport, kept: int) -> SanitizeReport:
        report.kept = kept
        if not report.is_clean:
            logger.warning(
                "cache_sanitized",
                key=report.key,
                kept=report.kept,
                dropped=report.dropped,
                issues=report.issues,
            )
        return report

    def _documents(self, key: str, raw: Any) -> tuple[list[Document], SanitizeReport]:
        records, report = self._records(key, raw)

        documents: list[Document] = []
        for record in records:
            if not record.get("id"):
                report.dropped += 1
                continue
            try:
                documents.append(document_from_dict(record))
            except ValidationError as e:
                report.dropped += 1
                report.issues.append(f"{record.get('id')}: {e.error_count()} invalid fields")

        return documents, report

    def documents(self, key: str, raw: Any) -> tuple[list[Document], SanitizeReport]:
        """Pending queue: vouchers and bank statements mixed."""
        documents, report = self._documents(key, raw)
        return documents, self._finish(report, len(documents))

    def vouchers(self, key: str, raw: Any) -> tuple[list[Voucher], SanitizeReport]:
        """Posted vouchers; bank statements found here are dropped."""
        documents, report = self._documents(key, raw)
        vouchers = [doc for doc in documents if isinstance(doc, Voucher)]
        report.dropped += len(documents) - len(vouchers)
        return vouchers, self._finish(report, len(vouchers))

    def bank_statements(self, key: str, raw: Any) -> tuple[list[BankStatement], SanitizeReport]:
        records, report = self._records(key, raw)

        statements = []
        for record in records:
            if not record.get("id"):
                report.dropped += 1
                continue
            try:
                statements.append(BankStatement.model_validate(record))
            except ValidationError as e:
                report.dropped += 1
                report.issues.append(f"{record.get('id')}: {e.error_count()} invalid fields")

        return statements, self._finish(report, len(statements))

    def _coerce_ledger(self, record: dict) -> dict:
        record = dict(record)

        transactions = record.get("transactions")
        if not isinstance(transactions, list):
            transactions = []
        record["transactions"] = [
            tx for tx in transactions if isinstance(tx, dict) and tx.get("id")
        ]

        record["balance"] = parse_amount(record.get("balance"))
        record["opening_balance"] = parse_amount(record.get("opening_balance"))

        is_debtor = record["balance"] >= ZERO
        if record.get("group") not in {g.value for g in LedgerGroup}:
            record["group"] = (
                LedgerGroup.SUNDRY_DEBTORS if is_debtor else LedgerGroup.SUNDRY_CREDITORS
            )
        if record.get("type") not in {t.value for t in PartyType}:
            record["type"] = PartyType.CUSTOMER if is_debtor else PartyType.VENDOR
        return record

    def ledgers(self, key: str, raw: Any) -> tuple[list[Ledger], SanitizeReport]:
        records, report = self._records(key, raw)

        ledgers = []
        for record in records:
            name = record.get("name")
            if not isinstance(name, str) or not name.strip():
                report.dropped += 1
                continue
            try:
                ledgers.append(Ledger.model_validate(self._coerce_ledger(record)))
            except ValidationError as e:
                report.dropped += 1
                report.issues.append(f"{name}: {e.error_count()} invalid fields")

        return ledgers, self._finish(report, len(ledgers))

    def model(
        self,
        key: str,
        raw: Any,
        model_cls: type[ModelT],
        default: Optional[ModelT] = None,
    ) -> tuple[ModelT, SanitizeReport]:
        """A single cached object (settings, visibility, impact)."""
        report = SanitizeReport(key=key)
        fallback = default if default is not None else model_cls()

        if raw is None:
            return fallback, report
        if not isinstance(raw, dict):
            report.issues.append(f"expected an object, got {type(raw).__name__}")
            return fallback, self._finish(report, 0)
        try:
            return model_cls.model_validate(raw), self._finish(report, 1)
        except ValidationError as e:
            report.dropped = 1
            report.issues.append(f"{e.error_count()} invalid fields")
            return fallback, self._finish(report, 0)

    def model_list(
        self,
        key: str,
        raw: Any,
        model_cls: type[ModelT],
    ) -> tuple[list[ModelT], SanitizeReport]:
        """A cached list of plain models (team members)."""
        records, report = self._records(key, raw)

        items = []
        for record in records:
            try:
                items.append(model_cls.model_validate(record))
            except ValidationError:
                report.dropped += 1

        return items, self._finish(report, len(items))
