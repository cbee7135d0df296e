"""Service layer dedicated to event registrations and check-in codes."""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from campus_events.models import TERMINAL_STATUSES, Attendee, Event, utcnow
from campus_events.services.capacity import is_at_capacity
from campus_events.services.events import EventAggregateService, format_event
from campus_events.services.exceptions import (
    AlreadyRegisteredError,
    CapacityExceededError,
    EventNotOpenError,
    ForbiddenRoleError,
    NotRegisteredError,
)
from campus_events.services.permissions import Requester
from campus_events.services.qr_codes import CheckInCodec

__all__ = ["RegistrationService"]

logger = structlog.get_logger(__name__)


class RegistrationService(EventAggregateService):
    """Admit and withdraw registrants; hand out their check-in codes."""

    def __init__(self, session: Session, *, codec: Optional[CheckInCodec] = None) -> None:
        super().__init__(session)
        self.codec = codec or CheckInCodec.from_config()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def register(self, event_id: int, requester: Requester) -> Dict[str, Any]:
        if requester.is_admin:
            raise ForbiddenRoleError("Administrators cannot register for events")

        event = self._get_event(event_id)
        if event.status in TERMINAL_STATUSES:
            raise EventNotOpenError(f"Cannot register for {event.status} event")
        if event.is_user_registered(requester.id):
            raise AlreadyRegisteredError("You are already registered for this event")
        if is_at_capacity(len(event.attendees), event.capacity):
            raise CapacityExceededError("This event has reached its maximum capacity")

        name = requester.name or str(requester.id)
        token = self.codec.issue(event.id, requester.id, name)
        with self._writing():
            self.repository.add_attendee(
                event,
                user_id=str(requester.id),
                name=name,
                registered_at=utcnow(),
                check_in_id=token.check_in_id,
                qr_payload=token.payload,
            )
        logger.info(
            "registration_created",
            event_id=event.id,
            user_id=requester.id,
            attendee_count=len(event.attendees),
        )
        return {
            "event": format_event(event, requester),
            "qrCode": {
                "qrCodeId": token.check_in_id,
                "qrCodeData": token.payload,
                "qrCodeImage": token.image,
            },
        }

    def cancel(self, event_id: int, requester: Requester) -> Dict[str, Any]:
        event = self._get_event(event_id)
        attendee = self._get_own_registration(event, requester)
        with self._writing():
            self.repository.remove_attendee(event, attendee)
        logger.info("registration_cancelled", event_id=event.id, user_id=requester.id)
        return {"event": format_event(event, requester)}

    def get_check_in_code(self, event_id: int, requester: Requester) -> Dict[str, Any]:
        event = self._get_event(event_id)
        attendee = self._get_own_registration(event, requester)
        return {
            "qrCodeId": attendee.check_in_id,
            "qrCodeData": attendee.qr_payload,
            "qrCodeImage": self.codec.render_preview(attendee.qr_payload),
            "attended": attendee.attended,
        }

    def download_check_in_image(self, event_id: int, requester: Requester) -> Tuple[bytes, str]:
        """Return the print-size PNG and a download filename."""
        event = self._get_event(event_id)
        attendee = self._get_own_registration(event, requester)
        image = self.codec.render_for_download(attendee.qr_payload)
        return image, f"event-{event.id}-check-in.png"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _get_own_registration(event: Event, requester: Requester) -> Attendee:
        attendee = event.find_attendee(requester.id)
        if attendee is None:
            raise NotRegisteredError("You are not registered for this event")
        return attendee

