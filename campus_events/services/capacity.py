"""Capacity rules. ``None`` capacity means the event is unlimited."""
from __future__ import annotations

from typing import Optional

__all__ = ["can_reduce_capacity_to", "is_at_capacity", "spots_remaining"]


def is_at_capacity(attendee_count: int, capacity: Optional[int]) -> bool:
    if not capacity:
        return False
    return attendee_count >= capacity


def spots_remaining(attendee_count: int, capacity: Optional[int]) -> Optional[int]:
    if not capacity:
        return None
    return max(0, capacity - attendee_count)


def can_reduce_capacity_to(new_capacity: int, current_attendee_count: int) -> bool:
    return new_capacity >= current_attendee_count
