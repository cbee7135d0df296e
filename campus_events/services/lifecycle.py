"""Time-driven event status promotion and its background scheduler."""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Optional

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from campus_events.config import LifecycleConfig, get_config
from campus_events.database import get_session
from campus_events.models import utcnow
from campus_events.repositories.events import EventRepository

__all__ = ["LifecycleScheduler", "LifecycleService", "SWEEP_JOB_ID"]

logger = structlog.get_logger(__name__)

SWEEP_JOB_ID = "event-lifecycle-sweep"


class LifecycleService:
    """Promote events along upcoming -> ongoing -> completed by the clock.

    The sweep is a pair of conditional bulk updates and looks at nothing but
    the timestamps; cancelled events and attendee state are never touched.
    Re-running it is harmless because the filters exclude events already
    promoted.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.repository = EventRepository(session)

    def sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        current = now or utcnow()
        try:
            started, completed = self.repository.promote_statuses(current)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return {"started": started, "completed": completed}


class LifecycleScheduler:
    """Run the lifecycle sweep on a fixed interval off the request path."""

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        *,
        session_factory: Callable[[], Session] = get_session,
    ) -> None:
        self.config = config or get_config().lifecycle
        self.session_factory = session_factory
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        self._scheduler.add_job(
            self.run_once,
            "interval",
            minutes=self.config.interval_minutes,
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=utcnow(),
        )
        self._scheduler.start()
        self._started = True
        logger.info("lifecycle_scheduler_started", interval_minutes=self.config.interval_minutes)

    def shutdown(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False

    def run_once(self) -> Optional[Dict[str, int]]:
        session = self.session_factory()
        try:
            result = LifecycleService(session).sweep()
        except Exception:
            # The next interval retries; the scheduler thread must survive.
            logger.exception("lifecycle_sweep_failed")
            return None
        finally:
            session.close()
        if result["started"] or result["completed"]:
            logger.info("lifecycle_sweep_completed", **result)
        return result
