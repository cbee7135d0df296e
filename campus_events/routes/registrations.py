"""Routes for registering to events and retrieving check-in codes."""
from __future__ import annotations

from flask import Blueprint, Response, g, jsonify

from campus_events.routes.dependencies import get_registration_service, login_required
from campus_events.routes.utils import service_error_response
from campus_events.services.exceptions import ServiceError

registrations_bp = Blueprint("registrations", __name__)


@registrations_bp.post("/events/<int:event_id>/register")
@login_required
def register(event_id: int):
    service = get_registration_service()
    try:
        result = service.register(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Successfully registered for event", **result}), 201


@registrations_bp.delete("/events/<int:event_id>/register")
@login_required
def cancel_registration(event_id: int):
    service = get_registration_service()
    try:
        result = service.cancel(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Registration cancelled successfully", **result})


@registrations_bp.get("/events/<int:event_id>/qr-code")
@login_required
def check_in_code(event_id: int):
    service = get_registration_service()
    try:
        code = service.get_check_in_code(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"qrCode": code})


@registrations_bp.get("/events/<int:event_id>/qr-code/download")
@login_required
def download_check_in_code(event_id: int):
    service = get_registration_service()
    try:
        image, filename = service.download_check_in_image(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    response = Response(image, mimetype="image/png")
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
