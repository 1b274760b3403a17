import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from recurrence import days_in_month

MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
MAX_WINDOW_MONTHS = 24


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def parse_month_key(key: str) -> tuple[int, int]:
    match = MONTH_KEY.match((key or "").strip())
    if not match:
        raise ValueError("Month must be in YYYY-MM format")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError("Month must be in YYYY-MM format")
    return year, month


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _shift(year: int, month: int, delta: int) -> tuple[int, int]:
    month_index = (year * 12) + (month - 1) + delta
    return month_index // 12, (month_index % 12) + 1


def shift_month_key(key: str, delta: int) -> str:
    year, month = _shift(*parse_month_key(key), delta)
    return f"{year:04d}-{month:02d}"


def previous_month_key(key: str) -> str:
    return shift_month_key(key, -1)


def month_period(key: str) -> Period:
    year, month = parse_month_key(key)
    return Period(
        key, date(year, month, 1), date(year, month, days_in_month(year, month))
    )


def iter_month_keys(start: str, end: str) -> list[str]:
    start_year, start_month = parse_month_key(start)
    end_year, end_month = parse_month_key(end)
    if (start_year, start_month) > (end_year, end_month):
        raise ValueError("Start month must not be after end month")
    keys: list[str] = []
    year, month = start_year, start_month
    while (year, month) <= (end_year, end_month):
        keys.append(f"{year:04d}-{month:02d}")
        year, month = _shift(year, month, 1)
    return keys


def trailing_month_keys(count: int, *, today: Optional[date] = None) -> list[str]:
    """The ``count`` month keys ending with the month of ``today``."""
    if count < 1:
        raise ValueError("Window must cover at least one month")
    today = today or date.today()
    end = month_key(today)
    return iter_month_keys(shift_month_key(end, -(count - 1)), end)


def resolve_month_window(
    months: Optional[int],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> list[str]:
    if start or end:
        if not start or not end:
            raise ValueError("Custom window requires start and end months")
        keys = iter_month_keys(start, end)
        if len(keys) > MAX_WINDOW_MONTHS:
            raise ValueError(f"Window cannot exceed {MAX_WINDOW_MONTHS} months")
        return keys

    count = 6 if months is None else months
    if not 1 <= count <= MAX_WINDOW_MONTHS:
        raise ValueError(f"Months parameter must be between 1 and {MAX_WINDOW_MONTHS}")
    return trailing_month_keys(count, today=today)


def fiscal_month_period(key: str, start_day: int = 1) -> Period:
    """
    Window labelled by ``key`` that opens on ``start_day`` of that month and
    closes the day before the following window opens. Start days past the end
    of a short month snap to its last day.
    """
    if not 1 <= start_day <= 31:
        raise ValueError("Fiscal month start day must be between 1 and 31")
    year, month = parse_month_key(key)
    start = date(year, month, min(start_day, days_in_month(year, month)))
    next_year, next_month = _shift(year, month, 1)
    next_start = date(
        next_year,
        next_month,
        min(start_day, days_in_month(next_year, next_month)),
    )
    return Period(key, start, next_start - date.resolution)
