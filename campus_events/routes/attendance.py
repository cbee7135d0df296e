"""Organizer routes for attendance lists, manual marking and QR scans."""
from __future__ import annotations

from flask import Blueprint, g, jsonify

from campus_events.routes.dependencies import get_attendance_service, login_required
from campus_events.routes.utils import json_object_body, service_error_response
from campus_events.services.exceptions import ServiceError

attendance_bp = Blueprint("attendance", __name__)


@attendance_bp.get("/events/<int:event_id>/attendance")
@login_required
def attendance_list(event_id: int):
    service = get_attendance_service()
    try:
        attendance = service.get_attendance(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify(attendance)


@attendance_bp.post("/events/<int:event_id>/attendance")
@login_required
def mark_attendance(event_id: int):
    data, error = json_object_body()
    if error is not None:
        return error

    service = get_attendance_service()
    try:
        result = service.mark_one(
            event_id, g.requester, data.get("userId"), data.get("attended")
        )
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Attendance updated successfully", **result})


@attendance_bp.post("/events/<int:event_id>/attendance/bulk")
@login_required
def bulk_mark_attendance(event_id: int):
    data, error = json_object_body()
    if error is not None:
        return error

    service = get_attendance_service()
    try:
        result = service.mark_bulk(event_id, g.requester, data.get("attendanceData"))
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Bulk attendance processed", **result})


@attendance_bp.post("/events/<int:event_id>/attendance/qr")
@login_required
def mark_attendance_by_qr(event_id: int):
    data, error = json_object_body()
    if error is not None:
        return error

    service = get_attendance_service()
    try:
        result = service.mark_by_scan(event_id, g.requester, data.get("qrData"))
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"message": "Attendance marked successfully", **result})


@attendance_bp.get("/events/<int:event_id>/attendance/stats")
@login_required
def attendance_stats(event_id: int):
    service = get_attendance_service()
    try:
        stats = service.get_stats(event_id, g.requester)
    except ServiceError as exc:
        return service_error_response(exc)
    return jsonify({"stats": stats})
