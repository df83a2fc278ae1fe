from datetime import datetime


class AppError(Exception):
    """Base class for all application exceptions."""
    code = "app_error"
    retryable = False

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    code = "not_found"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


class PermissionDenied(AppError):
    """Raised when the caller is not allowed to act on a duty."""
    code = "permission_denied"

    def __init__(self, message: str):
        super().__init__(message, status_code=403)


class AlreadyDecided(AppError):
    """Acknowledgment was already submitted for this duty. The stored decision is unchanged."""
    code = "already_decided"

    def __init__(self, assignment_id: str, current_status: str):
        super().__init__(
            "Acknowledgment has already been submitted for this duty",
            status_code=409,
            details={"assignment_id": assignment_id, "status": current_status},
        )


class OutsideWindow(AppError):
    """Live status reported outside the activation window."""
    code = "outside_window"

    def __init__(self, opens_at: datetime | None, closes_at: datetime | None):
        super().__init__(
            "Live status can only be reported inside the live status window",
            status_code=409,
            details={
                "opens_at": opens_at.isoformat() if opens_at else None,
                "closes_at": closes_at.isoformat() if closes_at else None,
            },
        )


class MissingRequiredField(AppError):
    code = "missing_required_field"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is required", status_code=422, details={"field": field})


class InvalidTransition(AppError):
    code = "invalid_transition"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)


class CandidateNoLongerAvailable(AppError):
    """The chosen reserve faculty was taken or declined before the commit. Refetch and retry."""
    code = "candidate_no_longer_available"
    retryable = True

    def __init__(self, assignment_id: str, faculty_id: str):
        super().__init__(
            "Selected replacement candidate is no longer available",
            status_code=409,
            details={"assignment_id": assignment_id, "faculty_id": faculty_id},
        )


class PersistenceUnavailable(AppError):
    """Storage or the per-assignment lock could not be reached in time. Nothing was committed."""
    code = "persistence_unavailable"
    retryable = True

    def __init__(self, message: str = "Storage is temporarily unavailable, retry shortly"):
        super().__init__(message, status_code=503)


class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    code = "configuration_error"

    def __init__(self, message: str):
        super().__init__(message, status_code=500)
