from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import SubscriptionCycle


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int, *, desired_day: Optional[int] = None) -> date:
    """Shift ``base`` by whole months, snapping to the last day of short months."""
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = desired_day or base.day
    return date(year, month, min(day, days_in_month(year, month)))


def _cycle_months(cycle: SubscriptionCycle) -> int:
    if cycle == SubscriptionCycle.monthly:
        return 1
    if cycle == SubscriptionCycle.yearly:
        return 12
    raise ValueError(f"Unsupported subscription cycle: {cycle}")


def next_renewal_date(
    start_date: date, cycle: SubscriptionCycle, *, today: Optional[date] = None
) -> date:
    """
    First renewal strictly after ``today``, counted in whole cycles from
    ``start_date``. A start date that is still in the future is returned as is.

    Every candidate is derived from the start date rather than from the
    previous renewal, so a subscription started on the 31st renews on the
    31st whenever the month allows it.
    """
    today = today or local_today()
    if start_date > today:
        return start_date

    step = _cycle_months(cycle)
    elapsed = (today.year - start_date.year) * 12 + (today.month - start_date.month)
    cycles = max(elapsed // step, 0)
    candidate = add_months(start_date, cycles * step, desired_day=start_date.day)
    while candidate <= today:
        cycles += 1
        candidate = add_months(start_date, cycles * step, desired_day=start_date.day)
    return candidate


def days_until(target: date, *, today: Optional[date] = None) -> int:
    today = today or local_today()
    return (target - today).days
