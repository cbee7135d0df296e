"""Error taxonomy shared by every service.

Routes map the four categories to HTTP statuses: validation 422,
permission 403, not found 404, conflict 409. Token validation failures are
validation errors reported as 400.
"""
from __future__ import annotations

from typing import Dict, List, Optional


class ServiceError(Exception):
    code = "service_error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(ServiceError):
    """Raised when incoming payload validation fails."""

    code = "validation_failed"

    def __init__(
        self,
        errors: Dict[str, List[str]],
        message: str = "Validation failed.",
    ) -> None:
        super().__init__(message)
        self.errors = errors


class PermissionDeniedError(ServiceError):
    code = "permission_denied"


class NotFoundError(ServiceError):
    code = "not_found"


class ConflictError(ServiceError):
    code = "conflict"


# Permission ------------------------------------------------------------------
class ForbiddenRoleError(PermissionDeniedError):
    code = "forbidden_role"


class UnauthorizedError(PermissionDeniedError):
    """Requester is neither the organizer nor an administrator."""

    code = "unauthorized"


# Not found -------------------------------------------------------------------
class EventNotFoundError(NotFoundError):
    code = "event_not_found"

    def __init__(self, event_id) -> None:
        super().__init__("Event not found")
        self.event_id = event_id


class AttendeeNotFoundError(NotFoundError):
    code = "attendee_not_found"


class CheckInIdNotFoundError(NotFoundError):
    code = "check_in_id_not_found"


class NotRegisteredError(NotFoundError):
    code = "not_registered"


# Conflict --------------------------------------------------------------------
class EventNotOpenError(ConflictError):
    code = "event_not_open"


class AlreadyRegisteredError(ConflictError):
    code = "already_registered"


class CapacityExceededError(ConflictError):
    code = "capacity_exceeded"


class AlreadyPresentError(ConflictError):
    code = "already_present"


class CapacityConflictError(ConflictError):
    code = "capacity_conflict"


class StatusTransitionError(ConflictError):
    code = "invalid_status_transition"


class ConcurrentUpdateError(ConflictError):
    code = "concurrent_update"


# Check-in tokens -------------------------------------------------------------
class TokenValidationError(ValidationError):
    """Base class for rejected check-in tokens."""

    code = "invalid_token"

    def __init__(self, message: str) -> None:
        super().__init__({"qrData": [message]}, message=message)


class MalformedTokenError(TokenValidationError):
    code = "malformed_token"


class WrongTokenTypeError(TokenValidationError):
    code = "wrong_token_type"


class EventMismatchError(TokenValidationError):
    code = "event_mismatch"


class IncompleteTokenError(TokenValidationError):
    code = "incomplete_token"


class InvalidSignatureError(TokenValidationError):
    code = "invalid_signature"


__all__ = [
    "AlreadyPresentError",
    "AlreadyRegisteredError",
    "AttendeeNotFoundError",
    "CapacityConflictError",
    "CapacityExceededError",
    "CheckInIdNotFoundError",
    "ConcurrentUpdateError",
    "ConflictError",
    "EventMismatchError",
    "EventNotFoundError",
    "EventNotOpenError",
    "ForbiddenRoleError",
    "IncompleteTokenError",
    "InvalidSignatureError",
    "MalformedTokenError",
    "NotFoundError",
    "NotRegisteredError",
    "PermissionDeniedError",
    "ServiceError",
    "StatusTransitionError",
    "TokenValidationError",
    "UnauthorizedError",
    "ValidationError",
    "WrongTokenTypeError",
]
