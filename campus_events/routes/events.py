"""Routes for browsing and managing events."""
from __future__ import annotations

from flask import Blueprint, g, jsonify

from campus_events.routes.dependencies import (
    get_event_service,
    get_requester,
    login_required,
    request_filters,
)
from campus_events.routes.utils import json_object_body, service_error_response
from campus_events.services.exceptions import ServiceError

events_bp = Blueprint("events", __name__)


@events_bp.get("/events")
def list_events():
    service = get_event_service()
    try:
        listing = service.list_events(requester=get_requester(), **request_filters())
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify(listing)


@events_bp.get("/events/calendar")
def events_calendar():
    service = get_event_service()
    try:
        calendar = service.calendar(requester=get_requester(), **request_filters())
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify(calendar)


@events_bp.get("/events/attending")
@login_required
def attending_events():
    service = get_event_service()
    return jsonify({"events": service.list_attending(g.requester)})


@events_bp.post("/events")
@login_required
def create_event():
    data, error = json_object_body()
    if error is not None:
        return error

    service = get_event_service()
    try:
        created_event = service.create_event(data, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)

    payload = {
        "message": "Event created successfully",
        "event_id": created_event["id"],
        "event": created_event,
    }
    return jsonify(payload), 201


@events_bp.get("/events/<int:event_id>")
def get_event(event_id: int):
    service = get_event_service()
    try:
        event = service.get_event(event_id, get_requester())
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"event": event})


@events_bp.patch("/events/<int:event_id>")
@login_required
def update_event(event_id: int):
    data, error = json_object_body()
    if error is not None:
        return error

    service = get_event_service()
    try:
        updated_event = service.update_event(event_id, data, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Event updated successfully", "event": updated_event})


@events_bp.delete("/events/<int:event_id>")
@login_required
def delete_event(event_id: int):
    service = get_event_service()
    try:
        service.delete_event(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Event deleted successfully"})


@events_bp.get("/events/<int:event_id>/attendees")
def list_attendees(event_id: int):
    service = get_event_service()
    try:
        attendees = service.list_attendees(event_id)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"attendees": attendees, "total": len(attendees)})
