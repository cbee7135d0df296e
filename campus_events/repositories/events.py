"""Repository objects for managing event persistence."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session, selectinload

from campus_events.models import Attendee, Event, utcnow


class EventRepository:
    """Persistence operations for events and their attendee lists."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_events(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        starts_after: Optional[datetime] = None,
        ends_before: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[Sequence[Event], int]:
        query = select(Event)

        if status:
            query = query.where(Event.status == status)
        if category:
            query = query.where(Event.category == category)
        if search:
            pattern = f"%{search.casefold()}%"
            query = query.where(
                or_(
                    func.lower(Event.title).like(pattern),
                    func.lower(Event.description).like(pattern),
                    func.lower(Event.location).like(pattern),
                )
            )
        if starts_after:
            query = query.where(Event.start_date >= starts_after)
        if ends_before:
            query = query.where(Event.end_date <= ends_before)

        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        query = (
            query.options(selectinload(Event.attendees))
            .order_by(Event.start_date.asc(), Event.id.asc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return self.session.scalars(query).all(), int(total)

    def list_events_for_attendee(self, user_id: str) -> Sequence[Event]:
        query = (
            select(Event)
            .join(Attendee, Attendee.event_id == Event.id)
            .where(Attendee.user_id == str(user_id))
            .options(selectinload(Event.attendees))
            .order_by(Event.start_date.asc(), Event.id.asc())
        )
        return self.session.scalars(query).all()

    def get_event(self, event_id: int) -> Event:
        query = (
            select(Event)
            .options(selectinload(Event.attendees))
            .where(Event.id == event_id)
        )
        try:
            return self.session.execute(query).scalar_one()
        except NoResultFound as exc:
            raise LookupError(f"Event {event_id} not found") from exc

    def create_event(self, **fields) -> Event:
        event = Event(**fields)
        self.session.add(event)
        self.session.flush()
        self.session.refresh(event)
        return event

    def update_event(self, event: Event, updates: dict) -> Event:
        for key, value in updates.items():
            setattr(event, key, value)
        self.session.flush()
        return event

    def remove_event(self, event: Event) -> None:
        self.session.delete(event)
        self.session.flush()

    def add_attendee(self, event: Event, **fields) -> Attendee:
        attendee = Attendee(**fields)
        event.attendees.append(attendee)
        self._touch(event)
        self.session.flush()
        return attendee

    def remove_attendee(self, event: Event, attendee: Attendee) -> None:
        event.attendees.remove(attendee)
        self._touch(event)
        self.session.flush()

    def save_attendance(self, event: Event) -> None:
        self._touch(event)
        self.session.flush()

    def find_attendee_by_check_in_id(self, event: Event, check_in_id: str) -> Optional[Attendee]:
        return next((a for a in event.attendees if a.check_in_id == check_in_id), None)

    def promote_statuses(self, now: datetime) -> Tuple[int, int]:
        """Advance time-elapsed events; returns (started, completed) counts."""

        started = self.session.execute(
            update(Event)
            .where(Event.status == "upcoming")
            .where(Event.start_date <= now)
            .values(status="ongoing", version=Event.version + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        completed = self.session.execute(
            update(Event)
            .where(Event.status == "ongoing")
            .where(Event.end_date <= now)
            .values(status="completed", version=Event.version + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        return int(started or 0), int(completed or 0)

    @staticmethod
    def _touch(event: Event) -> None:
        # Changing a column on the event row makes the flush emit a
        # version-checked UPDATE for the whole aggregate.
        event.updated_at = utcnow()
