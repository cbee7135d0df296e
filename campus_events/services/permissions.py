"""Requester identity and the organizer/administrator predicate."""
from __future__ import annotations

from dataclasses import dataclass

from campus_events.models import Event
from campus_events.services.exceptions import UnauthorizedError

ROLES = ("user", "admin")


@dataclass(frozen=True)
class Requester:
    """Authenticated caller as asserted by the identity provider."""

    id: str
    role: str = "user"
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def can_manage(event: Event, requester: Requester) -> bool:
    return requester.is_admin or str(event.organizer_id) == str(requester.id)


def ensure_can_manage(event: Event, requester: Requester, action: str = "manage") -> None:
    if not can_manage(event, requester):
        raise UnauthorizedError(f"Not authorized to {action} this event")
