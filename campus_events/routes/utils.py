"""Shared route utilities."""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from flask import jsonify, request

from campus_events.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    TokenValidationError,
    ValidationError,
)


def error_response(
    status: int,
    message: str,
    details: Optional[Any] = None,
    *,
    reason: Optional[str] = None,
):
    payload = {"error": {"code": status, "message": message}}
    if reason is not None:
        payload["error"]["reason"] = reason
    if details is not None:
        payload["error"]["details"] = details
    return jsonify(payload), status


def service_error_response(exc: ServiceError):
    """Translate a service exception into the JSON error envelope."""

    if isinstance(exc, TokenValidationError):
        return error_response(400, exc.message, reason=exc.code)
    if isinstance(exc, ValidationError):
        return error_response(422, exc.message, exc.errors, reason=exc.code)
    if isinstance(exc, PermissionDeniedError):
        return error_response(403, exc.message, reason=exc.code)
    if isinstance(exc, NotFoundError):
        return error_response(404, exc.message, reason=exc.code)
    if isinstance(exc, ConflictError):
        return error_response(409, exc.message, reason=exc.code)
    return error_response(400, exc.message, reason=exc.code)


def json_object_body() -> Tuple[Optional[Dict[str, Any]], Optional[Tuple[Any, int]]]:
    """Return ``(payload, None)`` or ``(None, error response)``."""

    if not request.is_json:
        return None, error_response(415, "Content-Type 'application/json' required.")
    data = request.get_json(silent=True)
    if data is None:
        return None, error_response(400, "Invalid or unparsable JSON.")
    if not isinstance(data, dict):
        return None, error_response(
            400, "Invalid JSON payload: an object (dict) is required."
        )
    return data, None
