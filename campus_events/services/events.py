"""Service layer for event orchestration and validation."""
from __future__ import annotations

import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from campus_events.config import get_config
from campus_events.models import (
    EVENT_CATEGORIES,
    EVENT_STATUSES,
    Attendee,
    Event,
)
from campus_events.repositories.events import EventRepository
from campus_events.services.calendar import PERIODS, get_date_range, group_events_by_date
from campus_events.services.capacity import (
    can_reduce_capacity_to,
    is_at_capacity,
    spots_remaining,
)
from campus_events.services.exceptions import (
    CapacityConflictError,
    ConcurrentUpdateError,
    EventNotFoundError,
    StatusTransitionError,
    ValidationError,
)
from campus_events.services.permissions import Requester, ensure_can_manage

__all__ = [
    "EventAggregateService",
    "EventService",
    "format_event",
    "parse_timestamp",
    "serialize_attendee",
    "serialize_datetime",
]

logger = structlog.get_logger(__name__)

# Forward moves may skip a step; cancelled is reachable from any
# non-terminal status.
ALLOWED_TRANSITIONS = {
    "upcoming": {"ongoing", "completed", "cancelled"},
    "ongoing": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
MAX_PAGE_SIZE = 100


def serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "Z" if value else None


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 string into a naive UTC datetime."""

    if not isinstance(value, str) or not value.strip():
        raise ValueError("Invalid date format")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def serialize_attendee(attendee: Attendee, *, include_attendance: bool = False) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "userId": attendee.user_id,
        "name": attendee.name,
        "registeredAt": serialize_datetime(attendee.registered_at),
    }
    if include_attendance:
        payload.update(
            {
                "attended": attendee.attended,
                "attendedAt": serialize_datetime(attendee.attended_at),
                "qrCodeId": attendee.check_in_id,
            }
        )
    return payload


def format_event(event: Event, requester: Optional[Requester] = None) -> Dict[str, Any]:
    """Serialize an event, adding capacity and requester-specific flags."""

    count = len(event.attendees)
    payload: Dict[str, Any] = {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "location": event.location,
        "startDate": serialize_datetime(event.start_date),
        "endDate": serialize_datetime(event.end_date),
        "category": event.category,
        "capacity": event.capacity,
        "image": event.image,
        "status": event.status,
        "organizer": {"id": event.organizer_id, "name": event.organizer_name},
        "attendees": [serialize_attendee(attendee) for attendee in event.attendees],
        "attendeeCount": count,
        "isAtCapacity": is_at_capacity(count, event.capacity),
        "spotsRemaining": spots_remaining(count, event.capacity),
        "isPast": event.is_past,
        "createdAt": serialize_datetime(event.created_at),
        "updatedAt": serialize_datetime(event.updated_at),
    }
    if requester is not None:
        is_attending = event.is_user_registered(requester.id)
        payload.update(
            {
                "isAdmin": requester.is_admin,
                "isAttending": is_attending,
                "isOrganizer": str(event.organizer_id) == str(requester.id),
                "canRegister": (
                    not requester.is_admin
                    and not is_attending
                    and not payload["isAtCapacity"]
                    and event.status == "upcoming"
                ),
            }
        )
    return payload


class EventAggregateService:
    """Shared plumbing for services that read-modify-write one event."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.repository = EventRepository(session)

    def _get_event(self, event_id: int) -> Event:
        try:
            return self.repository.get_event(event_id)
        except LookupError as exc:
            raise EventNotFoundError(event_id) from exc

    @contextmanager
    def _writing(self) -> Iterator[None]:
        """Apply a read-modify-write and commit it as one unit.

        A stale version or a duplicate attendee row means another request
        changed the event first; nothing is retried.
        """
        try:
            yield
            self.session.commit()
        except (StaleDataError, IntegrityError) as exc:
            self.session.rollback()
            raise ConcurrentUpdateError(
                "The event was modified concurrently, please retry"
            ) from exc


class EventService(EventAggregateService):
    """High level operations for managing events."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_events(
        self,
        *,
        requester: Optional[Requester] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        period: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        page: Any = 1,
        limit: Any = None,
    ) -> Dict[str, Any]:
        errors: Dict[str, List[str]] = {}
        status_value = self._normalize_filter_value(status)
        category_value = self._normalize_filter_value(category)
        search_value = self._normalize_filter_value(search)
        period_value = self._normalize_filter_value(period)

        if status_value and status_value not in EVENT_STATUSES:
            errors.setdefault("status", []).append("Unknown status.")
        if category_value and category_value not in EVENT_CATEGORIES:
            errors.setdefault("category", []).append("Unknown category.")
        if period_value and period_value not in PERIODS:
            errors.setdefault("period", []).append(f"Must be one of: {', '.join(PERIODS)}.")

        page_value = self._parse_positive_int(page, "page", errors, default=1)
        limit_value = self._parse_positive_int(
            limit, "limit", errors, default=get_config().page_size
        )
        limit_value = min(limit_value, MAX_PAGE_SIZE)

        starts_after = ends_before = None
        if period_value or (start_date and end_date):
            # Explicit bounds only apply to a custom range.
            uses_bounds = period_value in (None, "custom")
            try:
                start_bound = parse_timestamp(start_date) if uses_bounds and start_date else None
                end_bound = parse_timestamp(end_date) if uses_bounds and end_date else None
                starts_after, ends_before = get_date_range(
                    period_value or "custom", start_bound, end_bound
                )
            except ValueError:
                errors.setdefault("period", []).append("Invalid date parameters")

        if errors:
            raise ValidationError(errors)

        events, total = self.repository.list_events(
            status=status_value,
            category=category_value,
            search=search_value,
            starts_after=starts_after,
            ends_before=ends_before,
            offset=(page_value - 1) * limit_value,
            limit=limit_value,
        )
        return {
            "events": [format_event(event, requester) for event in events],
            "pagination": {
                "total": total,
                "page": page_value,
                "limit": limit_value,
                "pages": math.ceil(total / limit_value) if limit_value else 0,
            },
        }

    def calendar(self, *, requester: Optional[Requester] = None, **filters) -> Dict[str, Any]:
        listing = self.list_events(requester=requester, **filters)
        return {
            "days": group_events_by_date(listing["events"]),
            "pagination": listing["pagination"],
        }

    def list_attending(self, requester: Requester) -> List[Dict[str, Any]]:
        events = self.repository.list_events_for_attendee(requester.id)
        return [format_event(event, requester) for event in events]

    def get_event(self, event_id: int, requester: Optional[Requester] = None) -> Dict[str, Any]:
        return format_event(self._get_event(event_id), requester)

    def list_attendees(self, event_id: int) -> List[Dict[str, Any]]:
        event = self._get_event(event_id)
        return [serialize_attendee(attendee) for attendee in event.attendees]

    def create_event(self, payload: Dict[str, Any], requester: Requester) -> Dict[str, Any]:
        clean = self._validate_event_payload(payload, require_all=True)
        self._ensure_chronology(clean["start_date"], clean["end_date"])

        event = self.repository.create_event(
            title=clean["title"],
            description=clean["description"],
            location=clean["location"],
            start_date=clean["start_date"],
            end_date=clean["end_date"],
            category=clean["category"],
            capacity=clean.get("capacity"),
            image=clean.get("image"),
            status="upcoming",
            organizer_id=str(requester.id),
            organizer_name=requester.name or str(requester.id),
        )
        self.session.commit()
        logger.info("event_created", event_id=event.id, organizer_id=event.organizer_id)
        return format_event(event, requester)

    def update_event(
        self, event_id: int, payload: Dict[str, Any], requester: Requester
    ) -> Dict[str, Any]:
        clean = self._validate_event_payload(payload, require_all=False)
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "update")

        if "start_date" in clean or "end_date" in clean:
            self._ensure_chronology(
                clean.get("start_date", event.start_date),
                clean.get("end_date", event.end_date),
            )

        if "capacity" in clean and clean["capacity"] is not None:
            attendee_count = len(event.attendees)
            if not can_reduce_capacity_to(clean["capacity"], attendee_count):
                raise CapacityConflictError(
                    f"Cannot reduce capacity below current attendee count ({attendee_count})"
                )

        if "status" in clean and clean["status"] != event.status:
            allowed = ALLOWED_TRANSITIONS.get(event.status, set())
            if clean["status"] not in allowed:
                raise StatusTransitionError(
                    f"Cannot change status from {event.status} to {clean['status']}"
                )

        with self._writing():
            if clean:
                self.repository.update_event(event, clean)
        logger.info("event_updated", event_id=event.id, fields=sorted(clean))
        return format_event(event, requester)

    def delete_event(self, event_id: int, requester: Requester) -> None:
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "delete")
        with self._writing():
            self.repository.remove_event(event)
        logger.info("event_deleted", event_id=event_id, actor_id=requester.id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _ensure_chronology(start: datetime, end: datetime) -> None:
        if start >= end:
            raise ValidationError({"endDate": ["End date must be after start date"]})

    def _validate_event_payload(
        self, data: Dict[str, Any], *, require_all: bool
    ) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ValidationError(
                {"_schema": ["Invalid JSON payload: an object is required."]}
            )

        errors: Dict[str, List[str]] = {}
        clean: Dict[str, Any] = {}

        for field in ("title", "description", "location"):
            if field in data or require_all:
                value = data.get(field)
                if not isinstance(value, str) or not value.strip():
                    errors.setdefault(field, []).append("Required field (non-empty string).")
                else:
                    clean[field] = value.strip()

        for field, column in (("startDate", "start_date"), ("endDate", "end_date")):
            if field in data or require_all:
                try:
                    clean[column] = parse_timestamp(data.get(field))
                except ValueError:
                    errors.setdefault(field, []).append(
                        "Invalid date format, expected ISO 8601."
                    )

        if "category" in data or require_all:
            category = data.get("category")
            if category not in EVENT_CATEGORIES:
                errors.setdefault("category", []).append(
                    f"Must be one of: {', '.join(EVENT_CATEGORIES)}."
                )
            else:
                clean["category"] = category

        if "capacity" in data:
            capacity = data.get("capacity")
            if capacity is None:
                clean["capacity"] = None
            elif isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
                errors.setdefault("capacity", []).append("Capacity must be a positive integer")
            else:
                clean["capacity"] = capacity

        if "image" in data:
            image = data.get("image")
            if image is not None and not isinstance(image, str):
                errors.setdefault("image", []).append("Must be a string or null.")
            else:
                clean["image"] = image or None

        if "status" in data and not require_all:
            status = data.get("status")
            if status not in EVENT_STATUSES:
                errors.setdefault("status", []).append("Unknown status.")
            else:
                clean["status"] = status

        if errors:
            raise ValidationError(errors)
        return clean

    @staticmethod
    def _parse_positive_int(
        value: Any, field: str, errors: Dict[str, List[str]], *, default: int
    ) -> int:
        if value is None or value == "":
            return default
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            errors.setdefault(field, []).append("Must be a positive integer.")
            return default
        if parsed < 1:
            errors.setdefault(field, []).append("Must be a positive integer.")
            return default
        return parsed

    @staticmethod
    def _normalize_filter_value(value: Optional[str]) -> Optional[str]:
        if not isinstance(value, str):
            return value
        stripped = value.strip()
        return stripped or None
