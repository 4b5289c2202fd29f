"""
Error taxonomy shared by the session services, the HTTP layer and the device client.
"""


class WorkoutSessionError(Exception):
    """Base error for the workout session runtime."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"status_code": self.status_code, "message": self.message}


class NotFoundError(WorkoutSessionError):
    """Routine, day, session, item or set is missing."""

    status_code = 404


class ForbiddenError(WorkoutSessionError):
    """The resource does not belong to the caller."""

    status_code = 403


class ValidationError(WorkoutSessionError):
    """Malformed mutation or a request the current state cannot accept."""

    status_code = 422


class ConflictError(WorkoutSessionError):
    """A concurrent request changed the same rows first."""

    status_code = 409


TERMINAL_ERRORS = (NotFoundError, ForbiddenError, ValidationError)


def error_for_status(status_code: int, message: str) -> WorkoutSessionError:
    """Map an HTTP status back onto the taxonomy (used by the device client)."""
    if status_code == 404:
        return NotFoundError(message)
    if status_code in (401, 403):
        return ForbiddenError(message)
    if status_code in (400, 422):
        return ValidationError(message)
    if status_code == 409:
        return ConflictError(message)
    return WorkoutSessionError(message)
