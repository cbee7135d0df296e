"""SQLAlchemy models for campus events and their attendees."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_events.database import Base

EVENT_CATEGORIES = ("academic", "social", "career", "sports", "other")
EVENT_STATUSES = ("upcoming", "ongoing", "completed", "cancelled")
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Mixin providing automatic created/updated timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Event(TimestampMixin, Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_events_capacity_positive"),
        CheckConstraint("start_date < end_date", name="ck_events_start_before_end"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(), nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    category: Mapped[str] = mapped_column(
        Enum(*EVENT_CATEGORIES, name="event_category"), nullable=False, index=True
    )
    capacity: Mapped[Optional[int]] = mapped_column(Integer)
    image: Mapped[Optional[str]] = mapped_column(String(512))
    status: Mapped[str] = mapped_column(
        Enum(*EVENT_STATUSES, name="event_status"),
        nullable=False,
        default="upcoming",
        index=True,
    )
    organizer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    organizer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    attendees: Mapped[List["Attendee"]] = relationship(
        "Attendee",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Attendee.id",
    )

    # Every UPDATE is conditioned on the version read; a concurrent writer
    # gets StaleDataError instead of silently overwriting.
    __mapper_args__ = {"version_id_col": version}

    def find_attendee(self, user_id: str) -> Optional["Attendee"]:
        return next((a for a in self.attendees if a.user_id == str(user_id)), None)

    def is_user_registered(self, user_id: str) -> bool:
        return self.find_attendee(user_id) is not None

    @property
    def is_past(self) -> bool:
        return self.end_date < utcnow()


class Attendee(Base):
    """Registration of one user on one event.

    Attendance is carried by ``attended_at`` alone: ``attended`` is derived
    from it, so an attendee cannot be "present" without a timestamp or
    "absent" with one.
    """

    __tablename__ = "event_attendees"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_attendees_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(), nullable=False, default=utcnow
    )
    attended_at: Mapped[Optional[datetime]] = mapped_column(DateTime())
    check_in_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    qr_payload: Mapped[str] = mapped_column(Text, nullable=False)

    event: Mapped[Event] = relationship("Event", back_populates="attendees")

    @hybrid_property
    def attended(self) -> bool:
        return self.attended_at is not None

    @attended.expression
    def attended(cls):
        return cls.attended_at.is_not(None)

    def mark_present(self, at: Optional[datetime] = None) -> None:
        self.attended_at = at or utcnow()

    def mark_absent(self) -> None:
        self.attended_at = None


__all__ = [
    "Attendee",
    "EVENT_CATEGORIES",
    "EVENT_STATUSES",
    "Event",
    "TERMINAL_STATUSES",
    "utcnow",
]
