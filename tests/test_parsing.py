from datetime import date
from decimal import Decimal

import pytest

from models import TransactionDirection
from parsing import direction_from_marker, parse_amount, parse_date


@pytest.mark.parametrize(
    "value,expected",
    [
        ("15/03/2024", date(2024, 3, 15)),
        ("2024-03-15", date(2024, 3, 15)),
        ("15-03-2024", date(2024, 3, 15)),
        ("5/3/24", date(2024, 3, 5)),
        ("01/01/99", date(1999, 1, 1)),
        ("2024-03-15T10:00:00", date(2024, 3, 15)),
    ],
)
def test_parse_date_accepts_iso_and_day_first(value, expected):
    assert parse_date(value) == expected


@pytest.mark.parametrize(
    "value", ["99", "garbage", "", None, "31/02/2024", "2024-13-01", "15/03/20245"]
)
def test_parse_date_returns_none_for_invalid_input(value):
    assert parse_date(value) is None


def test_parse_amount_strips_symbols_and_separators():
    assert parse_amount("₹1,234.50") == Decimal("1234.50")
    assert parse_amount("$ 99") == Decimal("99")
    assert parse_amount(" 2,00,000.00 ") == Decimal("200000.00")


def test_parse_amount_keeps_sign():
    assert parse_amount("-12.40") == Decimal("-12.40")
    assert parse_amount("(45.00)") == Decimal("-45.00")


@pytest.mark.parametrize("value", [None, "", "  ", "abc", "NaN", "Infinity", "1.2.3"])
def test_parse_amount_rejects_non_numbers(value):
    assert parse_amount(value) is None


def test_direction_from_marker():
    assert direction_from_marker("Dr") == TransactionDirection.outflow
    assert direction_from_marker("DEBIT") == TransactionDirection.outflow
    assert direction_from_marker("withdrawal") == TransactionDirection.outflow
    assert direction_from_marker("Cr.") == TransactionDirection.inflow
    assert direction_from_marker("Credited") == TransactionDirection.inflow
    assert direction_from_marker("deposit") == TransactionDirection.inflow
    assert direction_from_marker("transfer") is None
    assert direction_from_marker("") is None
    assert direction_from_marker(None) is None
