"""Attendance tracking: manual toggles, bulk updates and QR scans.

Each attendee is either registered (``attended_at`` unset) or present
(``attended_at`` stamped). Organizers and administrators may move an
attendee in either direction by hand; a QR scan only ever marks presence
and refuses to scan the same badge twice.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from campus_events.models import Attendee, Event, utcnow
from campus_events.services.events import (
    EventAggregateService,
    serialize_attendee,
    serialize_datetime,
)
from campus_events.services.exceptions import (
    AlreadyPresentError,
    AttendeeNotFoundError,
    CheckInIdNotFoundError,
    TokenValidationError,
    ValidationError,
)
from campus_events.services.permissions import Requester, ensure_can_manage
from campus_events.services.qr_codes import CheckInCodec

__all__ = ["AttendanceService", "attendance_stats"]

logger = structlog.get_logger(__name__)


def attendance_stats(attendees: Iterable[Attendee]) -> Dict[str, Any]:
    attendees = list(attendees)
    total = len(attendees)
    attended = sum(1 for attendee in attendees if attendee.attended)
    return {
        "totalRegistered": total,
        "totalAttended": attended,
        "attendanceRate": round(attended / total, 2) if total else 0,
    }


class AttendanceService(EventAggregateService):
    """Organizer-side attendance operations on a single event."""

    def __init__(self, session: Session, *, codec: Optional[CheckInCodec] = None) -> None:
        super().__init__(session)
        self.codec = codec or CheckInCodec.from_config()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_attendance(self, event_id: int, requester: Requester) -> Dict[str, Any]:
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "view attendance for")
        return {
            "event": {
                "id": event.id,
                "title": event.title,
                "startDate": serialize_datetime(event.start_date),
                "endDate": serialize_datetime(event.end_date),
                "status": event.status,
            },
            "attendees": [
                serialize_attendee(attendee, include_attendance=True)
                for attendee in event.attendees
            ],
            "stats": attendance_stats(event.attendees),
        }

    def get_stats(self, event_id: int, requester: Requester) -> Dict[str, Any]:
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "view attendance for")
        return attendance_stats(event.attendees)

    def mark_one(
        self, event_id: int, requester: Requester, user_id: Any, attended: Any
    ) -> Dict[str, Any]:
        self._validate_entry(user_id, attended)
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "mark attendance for")

        with self._writing():
            attendee = self._apply(event, str(user_id), attended)
            self.repository.save_attendance(event)
        logger.info(
            "attendance_marked",
            event_id=event.id,
            user_id=attendee.user_id,
            attended=attendee.attended,
            actor_id=requester.id,
        )
        return {
            "attendee": serialize_attendee(attendee, include_attendance=True),
            "stats": attendance_stats(event.attendees),
        }

    def mark_bulk(self, event_id: int, requester: Requester, entries: Any) -> Dict[str, Any]:
        if not isinstance(entries, list):
            raise ValidationError({"attendanceData": ["Must be a list of {userId, attended}."]})
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "mark attendance for")

        results: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        with self._writing():
            for index, entry in enumerate(entries):
                user_id = entry.get("userId") if isinstance(entry, dict) else None
                attended = entry.get("attended") if isinstance(entry, dict) else None
                try:
                    self._validate_entry(user_id, attended)
                    attendee = self._apply(event, str(user_id), attended)
                except (ValidationError, AttendeeNotFoundError) as exc:
                    errors.append(
                        {
                            "index": index,
                            "userId": user_id,
                            "code": exc.code,
                            "message": exc.message,
                        }
                    )
                    continue
                results.append(
                    {
                        "userId": attendee.user_id,
                        "name": attendee.name,
                        "attended": attendee.attended,
                        "attendedAt": serialize_datetime(attendee.attended_at),
                    }
                )
            self.repository.save_attendance(event)

        stats = attendance_stats(event.attendees)
        logger.info(
            "attendance_bulk_marked",
            event_id=event.id,
            applied=len(results),
            failed=len(errors),
            actor_id=requester.id,
        )
        return {"results": results, "errors": errors, "stats": stats}

    def mark_by_scan(self, event_id: int, requester: Requester, raw: Any) -> Dict[str, Any]:
        event = self._get_event(event_id)
        ensure_can_manage(event, requester, "mark attendance for")

        try:
            token = self.codec.decode(raw, event.id)
        except TokenValidationError as exc:
            logger.warning("check_in_scan_rejected", event_id=event.id, reason=exc.code)
            raise

        attendee = self.repository.find_attendee_by_check_in_id(event, token.check_in_id)
        if attendee is None or attendee.user_id != token.user_id:
            raise CheckInIdNotFoundError("No registration matches this QR code")
        if attendee.attended:
            raise AlreadyPresentError(f"{attendee.name} is already marked as present")

        with self._writing():
            attendee.mark_present(utcnow())
            self.repository.save_attendance(event)
        logger.info(
            "attendance_scanned",
            event_id=event.id,
            user_id=attendee.user_id,
            actor_id=requester.id,
        )
        return {
            "attendee": serialize_attendee(attendee, include_attendance=True),
            "stats": attendance_stats(event.attendees),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_entry(user_id: Any, attended: Any) -> None:
        errors: Dict[str, List[str]] = {}
        if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
            errors.setdefault("userId", []).append("User ID is required.")
        if not isinstance(attended, bool):
            errors.setdefault("attended", []).append("Must be a boolean.")
        if errors:
            raise ValidationError(errors)

    @staticmethod
    def _apply(event: Event, user_id: str, attended: bool) -> Attendee:
        attendee = event.find_attendee(user_id)
        if attendee is None:
            raise AttendeeNotFoundError(f"User {user_id} is not registered for this event")
        if attended:
            attendee.mark_present(utcnow())
        else:
            attendee.mark_absent()
        return attendee
