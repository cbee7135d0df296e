"""Utilities for accessing services and the caller within Flask request context."""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from flask import current_app, g, request

from campus_events.database import get_session
from campus_events.routes.utils import error_response
from campus_events.services.attendance import AttendanceService
from campus_events.services.events import EventService
from campus_events.services.permissions import ROLES, Requester
from campus_events.services.qr_codes import CheckInCodec
from campus_events.services.registrations import RegistrationService

T = TypeVar("T")

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
USER_NAME_HEADER = "X-User-Name"

SERVICE_KEYS = ("event_service", "registration_service", "attendance_service")


def get_db_session():
    if "db_session" not in g:
        g.db_session = get_session()
    return g.db_session


def get_event_service() -> EventService:
    return _get_service("event_service", EventService)


def get_registration_service() -> RegistrationService:
    return _get_service("registration_service", RegistrationService, codec=_get_codec())


def get_attendance_service() -> AttendanceService:
    return _get_service("attendance_service", AttendanceService, codec=_get_codec())


def _get_service(key: str, factory: Type[T], **kwargs: Any) -> T:
    if key not in g:
        setattr(g, key, factory(get_db_session(), **kwargs))
    return getattr(g, key)


def _get_codec() -> CheckInCodec:
    codec = current_app.config.get("CHECK_IN_CODEC")
    if codec is None:
        codec = CheckInCodec.from_config()
        current_app.config["CHECK_IN_CODEC"] = codec
    return codec


def get_requester() -> Optional[Requester]:
    """Resolve the caller from the identity headers set by the auth gateway."""

    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        return None
    role = request.headers.get(USER_ROLE_HEADER, "user").strip().lower() or "user"
    if role not in ROLES:
        role = "user"
    name = request.headers.get(USER_NAME_HEADER, "").strip()
    return Requester(id=user_id, role=role, name=name)


def login_required(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        requester = get_requester()
        if requester is None:
            return error_response(401, "Authentication required.")
        g.requester = requester
        return view(*args, **kwargs)

    return wrapper


def cleanup_services(exception):
    session = g.pop("db_session", None)
    for key in SERVICE_KEYS:
        g.pop(key, None)
    g.pop("requester", None)
    if session is not None:
        try:
            if exception is not None:
                session.rollback()
        finally:
            session.close()


def request_filters() -> Dict[str, Optional[str]]:
    return {
        "status": request.args.get("status"),
        "category": request.args.get("category"),
        "search": request.args.get("search"),
        "period": request.args.get("period"),
        "start_date": request.args.get("startDate"),
        "end_date": request.args.get("endDate"),
        "page": request.args.get("page"),
        "limit": request.args.get("limit"),
    }
