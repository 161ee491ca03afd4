"""
Amount and Date Normalization

Extracted documents carry amounts like "₹ 1,200.00" and dates like
"15/03/2024". Everything downstream (ledgers, metrics, reconciliation)
works on Decimal amounts and ISO dates, so both are normalized here.

DESIGN DECISION: These functions NEVER raise.
An unreadable amount becomes zero and an unreadable date becomes "now".
Callers must not treat the returned date as proof of what the document said.
"""

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

_NON_NUMERIC = re.compile(r"[^0-9.\-]+")
_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_DATE_SEPARATORS = re.compile(r"[-/]")

# Tried in order once the day-first and ISO shapes have been ruled out
_FALLBACK_DATE_FORMATS = [
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d.%m.%Y",
    "%Y%m%d",
]

ZERO = Decimal("0")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_amount(value: Any) -> Decimal:
    """
    Turn a loosely formatted amount into a Decimal.

    Accepts numbers and strings such as "1,200.00", "₹500" or "-42".
    Everything except digits, '.' and '-' is stripped, then the leading
    number is read. None, empty and unreadable input all give zero.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ZERO
        return Decimal(str(value))

    if not isinstance(value, str):
        return ZERO

    cleaned = _NON_NUMERIC.sub("", value)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return ZERO

    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return ZERO


def parse_date_to_iso(value: Any) -> str:
    """
    Normalize a document date to ISO form.

    - Values with a time component ('T') pass through untouched.
    - YYYY-MM-DD (or YYYY/MM/DD) passes through untouched.
    - DD-MM-YYYY (or DD/MM/YYYY) is rewritten to YYYY-MM-DD.
    - Anything else is parsed best-effort; failing that, the current
      UTC timestamp is returned.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not value or not isinstance(value, str):
        return utc_now_iso()

    text = value.strip()
    if "T" in text:
        return text

    parts = _DATE_SEPARATORS.split(text)
    if len(parts) == 3:
        if len(parts[0]) == 4:
            return text
        if len(parts[2]) == 4:
            return f"{parts[2]}-{parts[1].zfill(2)}-{parts[0].zfill(2)}"

    try:
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        pass

    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    return utc_now_iso()


def first_present(mapping: dict, *keys: str, default: Any = None) -> Any:
    """Return the first value under `keys` that is neither None nor an empty string."""
    for key in keys:
        value = mapping.get(key)
        if value is not None and value != "":
            return value
    return default


def first_nonzero_amount(mapping: dict, *keys: str) -> Decimal:
    """Return the first value under `keys` that parses to a non-zero amount."""
    for key in keys:
        amount = parse_amount(mapping.get(key))
        if amount != ZERO:
            return amount
    return ZERO
