from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fbr_invoicing.modules.mapping.numeric import (
    format_currency,
    format_invoice_date,
    format_rate,
    normalize_hs_code,
    percent_of,
    round_currency,
    round_quantity,
    to_decimal,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1234567890", "1234.5678"),
        ("1234.5", "1234.5000"),
        ("", ""),
        ("12", "1200.0000"),
        ("0101.2100", "0101.2100"),
        ("8471-3010", "8471.3010"),
        (84713010, "8471.3010"),
        ("12.345678", "1200.3456"),
        ("  ", ""),
        ("abc", ""),
        (None, ""),
    ],
)
def test_normalize_hs_code(raw, expected):
    assert normalize_hs_code(raw) == expected


def test_normalized_hs_code_is_nine_characters_or_empty():
    for raw in ["1", "12345", "123456789012", "9805.92", "0000"]:
        value = normalize_hs_code(raw)
        assert len(value) == 9
        assert value[4] == "."


def test_round_currency_is_half_up():
    assert round_currency("2.345") == Decimal("2.35")
    assert round_currency("2.344") == Decimal("2.34")
    assert round_currency(0.125) == Decimal("0.13")
    assert round_currency(-1.005) == Decimal("-1.01")


def test_percent_of():
    assert percent_of(100, 17) == Decimal("17.00")
    assert percent_of("1000", "18") == Decimal("180.00")
    assert percent_of(Decimal("333.33"), Decimal("1.43")) == Decimal("4.77")


def test_float_inputs_do_not_leak_binary_error():
    assert round_currency(0.1 + 0.2) == Decimal("0.30")
    assert to_decimal(0.1) == Decimal("0.1")


def test_to_decimal_is_lenient():
    assert to_decimal(None) is None
    assert to_decimal("") is None
    assert to_decimal("n/a") is None
    assert to_decimal(True) is None
    assert to_decimal("1,250.50") == Decimal("1250.50")
    assert to_decimal(float("nan")) is None


def test_round_currency_rejects_garbage():
    with pytest.raises(ValueError):
        round_currency("abc")


def test_format_currency_and_quantity():
    assert format_currency(Decimal("117")) == "117.00"
    assert format_currency(None) == "0.00"
    assert format_currency("3.005") == "3.01"
    assert round_quantity("1.23456") == Decimal("1.2346")


@pytest.mark.parametrize(
    "pct, label",
    [(18, "18%"), (Decimal("0.5"), "0.5%"), ("1.43", "1.43%"), (0, "0%"), (Decimal("18.00"), "18%"), (100, "100%")],
)
def test_format_rate(pct, label):
    assert format_rate(pct) == label


def test_format_invoice_date_uses_calendar_fields_without_tz_shift():
    late_evening_karachi = datetime(2025, 12, 31, 23, 30, tzinfo=timezone(timedelta(hours=5)))
    assert format_invoice_date(late_evening_karachi) == "2025-12-31"
    assert format_invoice_date(date(2025, 1, 5)) == "2025-01-05"
    assert format_invoice_date("2025-03-09T22:15:00-05:00") == "2025-03-09"
    assert format_invoice_date(None) == ""


def test_format_invoice_date_rejects_invalid_strings():
    with pytest.raises(ValueError):
        format_invoice_date("31/12/2025")
    with pytest.raises(ValueError):
        format_invoice_date("2025-02-30")
