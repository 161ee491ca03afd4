"""Document classification package."""

from ledgerflow.classification.classifier import (
    BANK_STATEMENT_TYPE,
    DEFAULT_VOUCHER_TYPE,
    Classification,
    classify_payload,
)
from ledgerflow.models.records import resolve_voucher_kind

__all__ = [
    "BANK_STATEMENT_TYPE",
    "DEFAULT_VOUCHER_TYPE",
    "Classification",
    "classify_payload",
    "resolve_voucher_kind",
]
