import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from models import TransactionDirection

ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
DAY_FIRST_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})(?!\d)")

CURRENCY_SYMBOLS = ("₹", "$", "€", "£", "Rs.", "INR", "USD", "EUR", "GBP")

INFLOW_MARKERS = {"cr", "credit", "credited", "deposit", "inflow", "income"}
OUTFLOW_MARKERS = {"dr", "debit", "debited", "withdrawal", "outflow", "expense"}


def expand_two_digit_year(year: int) -> int:
    return 1900 + year if year > 50 else 2000 + year


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an ISO or day-first statement date. Returns None instead of raising
    so callers can simply skip the record.
    """
    if not value:
        return None
    value = value.strip()

    match = ISO_DATE.match(value)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    match = DAY_FIRST_DATE.match(value)
    if match:
        day, month, year_raw = match.groups()
        year = int(year_raw)
        if len(year_raw) == 2:
            year = expand_two_digit_year(year)
        try:
            return date(year, int(month), int(day))
        except ValueError:
            return None
    return None


def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """Signed amount from statement text, or None when it is not a finite number."""
    if value is None:
        return None
    clean = str(value).strip()
    for symbol in CURRENCY_SYMBOLS:
        clean = clean.replace(symbol, "")
    clean = clean.replace(",", "").replace(" ", "")
    if not clean:
        return None

    negative = False
    if clean.startswith("(") and clean.endswith(")"):
        negative = True
        clean = clean[1:-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return -amount if negative else amount


def direction_from_marker(value: Optional[str]) -> Optional[TransactionDirection]:
    if not value:
        return None
    words = re.findall(r"[a-z]+", value.lower())
    if any(word in INFLOW_MARKERS for word in words):
        return TransactionDirection.inflow
    if any(word in OUTFLOW_MARKERS for word in words):
        return TransactionDirection.outflow
    return None
