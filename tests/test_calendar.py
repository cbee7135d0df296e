from datetime import datetime

import pytest

from campus_events.services.calendar import get_date_range, group_events_by_date

# A Wednesday.
NOW = datetime(2026, 10, 14, 15, 30)


def test_today_range():
    start, end = get_date_range("today", now=NOW)
    assert start == datetime(2026, 10, 14)
    assert end == datetime(2026, 10, 14, 23, 59, 59, 999999)


def test_week_starts_on_sunday():
    start, end = get_date_range("week", now=NOW)
    assert start == datetime(2026, 10, 11)
    assert end.date() == datetime(2026, 10, 17).date()


def test_week_on_a_sunday_starts_that_day():
    start, _ = get_date_range("week", now=datetime(2026, 10, 18, 8))
    assert start == datetime(2026, 10, 18)


def test_month_range():
    start, end = get_date_range("month", now=datetime(2026, 2, 10))
    assert start == datetime(2026, 2, 1)
    assert end.date() == datetime(2026, 2, 28).date()


def test_custom_range_extends_end_of_day():
    start, end = get_date_range(
        "custom", datetime(2026, 10, 1, 12), datetime(2026, 10, 3, 9), now=NOW
    )
    assert start == datetime(2026, 10, 1, 12)
    assert end == datetime(2026, 10, 3, 23, 59, 59, 999999)


def test_custom_range_requires_both_bounds():
    with pytest.raises(ValueError):
        get_date_range("custom", datetime(2026, 10, 1), None, now=NOW)


def test_unknown_period_means_from_today():
    assert get_date_range(None, now=NOW) == (datetime(2026, 10, 14), None)


def test_group_events_by_date():
    events = [
        {"id": 1, "startDate": "2026-10-14T09:00:00Z"},
        {"id": 2, "startDate": "2026-10-15T09:00:00Z"},
        {"id": 3, "startDate": "2026-10-14T18:00:00Z"},
        {"id": 4, "startDate": None},
    ]
    grouped = group_events_by_date(events)
    assert [event["id"] for event in grouped["2026-10-14"]] == [1, 3]
    assert [event["id"] for event in grouped["2026-10-15"]] == [2]
    assert len(grouped) == 2
