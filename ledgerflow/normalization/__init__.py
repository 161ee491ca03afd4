"""Amount and date normalization package."""

from ledgerflow.normalization.normalizer import (
    ZERO,
    first_nonzero_amount,
    first_present,
    parse_amount,
    parse_date_to_iso,
    utc_now_iso,
)

__all__ = [
    "ZERO",
    "first_nonzero_amount",
    "first_present",
    "parse_amount",
    "parse_date_to_iso",
    "utc_now_iso",
]
