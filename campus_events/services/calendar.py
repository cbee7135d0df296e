"""Date-range presets for event listing and per-day grouping for calendar views."""
from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from campus_events.models import utcnow

__all__ = ["PERIODS", "get_date_range", "group_events_by_date"]

PERIODS = ("today", "week", "month", "custom")

END_OF_DAY = time(23, 59, 59, 999999)


def get_date_range(
    period: Optional[str],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
) -> Tuple[datetime, Optional[datetime]]:
    """Return ``(start, end)`` bounds for a named period.

    Weeks run Sunday to Saturday. ``custom`` requires both bounds and extends
    ``end`` to the end of its day. Any other value means "from today on" with
    no upper bound.
    """

    current = now or utcnow()
    today = datetime.combine(current.date(), time.min)

    if period == "today":
        return today, datetime.combine(today.date(), END_OF_DAY)

    if period == "week":
        # isoweekday: Monday=1 .. Sunday=7
        start_of_week = today - timedelta(days=today.isoweekday() % 7)
        end_of_week = start_of_week + timedelta(days=6)
        return start_of_week, datetime.combine(end_of_week.date(), END_OF_DAY)

    if period == "month":
        start_of_month = today.replace(day=1)
        next_month = (start_of_month + timedelta(days=32)).replace(day=1)
        end_of_month = next_month - timedelta(days=1)
        return start_of_month, datetime.combine(end_of_month.date(), END_OF_DAY)

    if period == "custom":
        if start is None or end is None:
            raise ValueError("Start and end dates are required for custom range")
        return start, datetime.combine(end.date(), END_OF_DAY)

    return today, None


def group_events_by_date(events: Iterable[Mapping[str, Any]]) -> Dict[str, List[Mapping[str, Any]]]:
    """Bucket serialized events under the ``YYYY-MM-DD`` of their start."""

    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for event in events:
        start = event.get("startDate")
        if not isinstance(start, str) or len(start) < 10:
            continue
        grouped.setdefault(start[:10], []).append(event)
    return grouped
