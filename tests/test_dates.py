import random
from datetime import date, datetime, timedelta, timezone

import pytest

from bunkhouse.utils.dates import (
    nights_between,
    next_target_weekend,
    random_opens_at,
    ranges_overlap,
    to_naive_utc,
    week_monday,
    weekend_for,
)


def test_weekend_for():
    assert weekend_for(date(2026, 10, 23)) == (date(2026, 10, 23), date(2026, 10, 25))

    with pytest.raises(ValueError):
        weekend_for(date(2026, 10, 24))


@pytest.mark.parametrize(
    "today, friday",
    [
        (date(2026, 10, 19), date(2026, 10, 30)),  # Monday
        (date(2026, 10, 22), date(2026, 10, 30)),  # Thursday
        (date(2026, 10, 23), date(2026, 11, 6)),  # Friday skips the coming weekend too
        (date(2026, 10, 25), date(2026, 11, 6)),  # Sunday
    ],
)
def test_next_target_weekend(today, friday):
    start, end = next_target_weekend(today)
    assert start == friday
    assert end == friday + timedelta(days=2)
    assert 8 <= (start - today).days <= 14


def test_week_monday():
    assert week_monday(date(2026, 10, 19)) == date(2026, 10, 19)
    assert week_monday(date(2026, 10, 21)) == date(2026, 10, 26)
    assert week_monday(date(2026, 10, 25)) == date(2026, 10, 26)


def test_random_opens_at_stays_in_range():
    monday = date(2026, 10, 26)
    rng = random.Random(42)
    for _ in range(200):
        opens_at = random_opens_at(monday, rng)
        assert opens_at.date() in (monday, monday + timedelta(days=1))
        assert 8 <= opens_at.hour <= 19


def test_ranges_overlap_is_inclusive():
    fri, sun = date(2026, 11, 6), date(2026, 11, 8)
    assert ranges_overlap(date(2026, 11, 1), fri, fri, sun)
    assert ranges_overlap(date(2026, 11, 7), date(2026, 11, 7), fri, sun)
    assert not ranges_overlap(date(2026, 11, 1), date(2026, 11, 5), fri, sun)
    assert not ranges_overlap(date(2026, 11, 9), date(2026, 11, 12), fri, sun)


def test_nights_between():
    assert nights_between(date(2026, 11, 6), date(2026, 11, 8)) == 2
    assert nights_between(date(2026, 11, 6), date(2026, 11, 6)) == 0
    assert nights_between(date(2026, 11, 8), date(2026, 11, 6)) == 0


def test_to_naive_utc():
    naive = datetime(2026, 11, 2, 9, 30)
    assert to_naive_utc(naive) is naive

    moscow = timezone(timedelta(hours=3))
    assert to_naive_utc(datetime(2026, 11, 2, 12, 30, tzinfo=moscow)) == naive
