from datetime import timedelta

import pytest

from campus_events.config import LifecycleConfig
from campus_events.database import get_session
from campus_events.models import Event, utcnow
from campus_events.services.lifecycle import SWEEP_JOB_ID, LifecycleScheduler, LifecycleService


@pytest.fixture
def session(app):
    session = get_session()
    yield session
    session.close()


def add_event(session, *, starts_in, lasts=timedelta(hours=2), status="upcoming"):
    start = utcnow() + starts_in
    event = Event(
        title="Lab Open Day",
        description="Tour the research labs.",
        location="Science Building",
        start_date=start,
        end_date=start + lasts,
        category="academic",
        status=status,
        organizer_id="organizer-1",
        organizer_name="Olivia Organizer",
    )
    session.add(event)
    session.commit()
    return event.id


def status_of(event_id):
    session = get_session()
    try:
        return session.get(Event, event_id).status
    finally:
        session.close()


def test_sweep_starts_event_once(session):
    event_id = add_event(session, starts_in=-timedelta(hours=1))

    assert LifecycleService(session).sweep() == {"started": 1, "completed": 0}
    assert status_of(event_id) == "ongoing"

    assert LifecycleService(session).sweep() == {"started": 0, "completed": 0}
    assert status_of(event_id) == "ongoing"


def test_sweep_completes_finished_events(session):
    event_id = add_event(session, starts_in=-timedelta(hours=5))

    result = LifecycleService(session).sweep()
    assert result == {"started": 1, "completed": 1}
    assert status_of(event_id) == "completed"


def test_sweep_leaves_future_and_cancelled_events(session):
    future_id = add_event(session, starts_in=timedelta(days=2))
    cancelled_id = add_event(session, starts_in=-timedelta(days=2), status="cancelled")

    assert LifecycleService(session).sweep() == {"started": 0, "completed": 0}
    assert status_of(future_id) == "upcoming"
    assert status_of(cancelled_id) == "cancelled"


def test_sweep_bumps_version(session):
    event_id = add_event(session, starts_in=-timedelta(minutes=5))
    LifecycleService(session).sweep()

    fresh = get_session()
    try:
        assert fresh.get(Event, event_id).version == 2
    finally:
        fresh.close()


def test_sweep_visible_through_api(client, session):
    event_id = add_event(session, starts_in=-timedelta(minutes=30))
    LifecycleService(session).sweep()

    response = client.get(f"/events/{event_id}")
    assert response.json["event"]["status"] == "ongoing"


def test_scheduler_run_once(session):
    event_id = add_event(session, starts_in=-timedelta(minutes=1))
    scheduler = LifecycleScheduler(LifecycleConfig(interval_minutes=5))

    assert scheduler.run_once() == {"started": 1, "completed": 0}
    assert status_of(event_id) == "ongoing"


def test_scheduler_run_once_survives_failures():
    class BrokenSession:
        def execute(self, *args, **kwargs):
            raise RuntimeError("database unavailable")

        def rollback(self):
            pass

        def close(self):
            pass

    scheduler = LifecycleScheduler(
        LifecycleConfig(interval_minutes=5), session_factory=BrokenSession
    )
    assert scheduler.run_once() is None


def test_scheduler_registers_interval_job(app):
    scheduler = LifecycleScheduler(LifecycleConfig(interval_minutes=7))
    scheduler.start()
    try:
        assert scheduler.running
        job = scheduler._scheduler.get_job(SWEEP_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=7)
    finally:
        scheduler.shutdown()
    assert not scheduler.running
