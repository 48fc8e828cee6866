"""
Утилиты для дат: выходные, окна записи, UTC.
"""

import random
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

FRIDAY = 4

# Windows open on Monday or Tuesday between 08:00 and 19:59
OPEN_HOUR_FROM = 8
OPEN_HOUR_SPAN = 12


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def weekend_for(friday: date) -> Tuple[date, date]:
    """Friday..Sunday range starting at `friday`."""
    if friday.weekday() != FRIDAY:
        raise ValueError(f"{friday.isoformat()} is not a Friday")
    return friday, friday + timedelta(days=2)


def next_target_weekend(today: date) -> Tuple[date, date]:
    """
    The weekend AFTER next: the Friday 8-14 days away and its Sunday.
    On a Friday the immediate next Friday is skipped as well.
    """
    days_until_friday = (FRIDAY - today.weekday()) % 7
    if days_until_friday == 0:
        days_until_friday = 7
    friday = today + timedelta(days=days_until_friday + 7)
    return weekend_for(friday)


def week_monday(today: date) -> date:
    """The Monday on which the sign-up for `next_target_weekend(today)` opens.

    Today if it is Monday, otherwise the coming Monday.
    """
    return today + timedelta(days=(0 - today.weekday()) % 7)


def random_opens_at(monday: date, rng: Optional[random.Random] = None) -> datetime:
    rng = rng or random.Random()
    day = monday + timedelta(days=rng.randint(0, 1))
    hour = OPEN_HOUR_FROM + rng.randrange(OPEN_HOUR_SPAN)
    minute = rng.randrange(60)
    return datetime.combine(day, time(hour, minute))


def ranges_overlap(start1: date, end1: date, start2: date, end2: date) -> bool:
    """Inclusive overlap, the way a stay touches a weekend."""
    return start1 <= end2 and start2 <= end1


def nights_between(check_in: date, check_out: date) -> int:
    return max((check_out - check_in).days, 0)
