"""
Pure numeric and formatting helpers for FBR invoices.

All money math goes through Decimal with ROUND_HALF_UP; floats are converted
via str() so 0.1 stays 0.1. Nothing here touches the clock or shared state.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.0001")
ZERO = Decimal("0")

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Lenient conversion to Decimal.

    None, empty strings, booleans and unparseable text yield None so callers can
    tell "not provided" apart from zero. Thousands separators are dropped.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return Decimal(str(value))
    s = str(value).strip().replace(",", "").replace(" ", "")
    if not s:
        return None
    try:
        d = Decimal(s)
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def _require_decimal(value: Number) -> Decimal:
    d = to_decimal(value)
    if d is None:
        raise ValueError(f"Not a number: {value!r}")
    return d


def round_currency(value: Number) -> Decimal:
    """Round half-up to 2 decimal places."""
    return _require_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(base: Number, pct: Number) -> Decimal:
    """round_currency(base * pct / 100)."""
    return round_currency(_require_decimal(base) * _require_decimal(pct) / Decimal(100))


def round_quantity(value: Number) -> Decimal:
    """Quantities keep up to 4 decimal places."""
    return _require_decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def format_currency(value: Optional[Number]) -> str:
    """Fixed 2-decimal string; None is rendered as 0.00."""
    if value is None:
        return "0.00"
    return f"{round_currency(value):.2f}"


def format_rate(pct: Number) -> str:
    """Percentage label as FBR expects it: 18 -> "18%", 0.5 -> "0.5%"."""
    d = _require_decimal(pct)
    text = format(d.normalize(), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text}%"


def normalize_hs_code(raw: Any) -> str:
    """
    Normalize a free-form HS code to XXXX.YYYY.

    With a decimal point, the digits left of the dot form the integer part and
    the digits right of it the fractional part. Without one, the first 4 digits
    form the integer part and the next (up to) 4 the fractional part. Each part
    is right-padded with zeros / truncated to 4 digits, so "12" -> "1200.0000".
    Empty or digit-less input returns "" (not provided).
    """
    if raw is None or isinstance(raw, bool):
        return ""
    text = str(raw).strip()
    if not text:
        return ""

    if "." in text:
        left, _, right = text.partition(".")
        int_digits = re.sub(r"\D", "", left)
        dec_digits = re.sub(r"\D", "", right)
        if not int_digits and not dec_digits:
            return ""
    else:
        digits = re.sub(r"\D", "", text)
        if not digits:
            return ""
        int_digits, dec_digits = digits[:4], digits[4:8]

    int_part = (int_digits + "0000")[:4]
    dec_part = (dec_digits + "0000")[:4]
    return f"{int_part}.{dec_part}"


def format_invoice_date(value: Union[date, datetime, str, None]) -> str:
    """
    Render a date as YYYY-MM-DD using its own calendar fields.

    Aware datetimes are NOT converted to UTC: a date picked as Dec 31 stays
    Dec 31 whatever its offset. ISO strings keep their leading date part.
    """
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
    text = str(value).strip()
    if not text:
        return ""
    match = _ISO_DATE_RE.match(text)
    if not match:
        raise ValueError(f"Unrecognized invoice date: {value!r}")
    year, month, day = (int(p) for p in match.groups())
    # Validates the calendar day (e.g. rejects 2025-02-30)
    parsed = date(year, month, day)
    return parsed.isoformat()
