"""
Domain errors.

Every error is a per-request outcome. The HTTP layer maps ``status_code``
and ``error_code`` onto the JSON error body.
"""

from typing import Optional


class DoctorMatchError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    error_code: str = "error"

    def __init__(self, message: str, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result = {"error": self.error_code, "detail": self.message}
        if self.detail:
            result["context"] = self.detail
        return result


# === Validation ===


class ValidationError(DoctorMatchError):
    """Malformed input: empty reason, unknown visit type, bad coordinates."""

    status_code = 422
    error_code = "validation_error"


# === Not found ===


class NotFoundError(DoctorMatchError):
    """Unknown doctor, slot, appointment or session id."""

    status_code = 404
    error_code = "not_found"


class DoctorNotFound(NotFoundError):
    error_code = "doctor_not_found"


class SlotNotFound(NotFoundError):
    error_code = "slot_not_found"


class AppointmentNotFound(NotFoundError):
    error_code = "appointment_not_found"


class SessionNotFound(NotFoundError):
    error_code = "session_not_found"


# === Conflicts ===


class ConflictError(DoctorMatchError):
    """A concurrent writer won the resource."""

    status_code = 409
    error_code = "conflict"


class SlotUnavailable(ConflictError):
    """The slot exists but is already booked."""

    error_code = "slot_unavailable"


class SessionBusy(ConflictError):
    """Another message is still being answered in this session."""

    error_code = "session_busy"


# === Lifecycle ===


class InvalidTransition(DoctorMatchError):
    """Illegal lifecycle move, e.g. cancelling a completed appointment."""

    status_code = 409
    error_code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot move appointment from {from_status} to {to_status}",
            detail={"from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


# === External services ===


class ExternalServiceError(DoctorMatchError):
    """Recommendation service or geolocation unavailable or timed out."""

    status_code = 502
    error_code = "external_service_error"


class RecommendationUnavailable(ExternalServiceError):
    error_code = "recommendation_unavailable"


class LocationUnavailable(ExternalServiceError):
    error_code = "location_unavailable"
