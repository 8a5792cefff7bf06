"""Errors raised by the dashboard services and mapped to HTTP responses."""


class DashboardError(Exception):
    """Base error carrying the HTTP status and the user-facing message."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DashboardError):
    """Malformed input, out-of-range values or empty required collections."""

    status = 400


class NotFoundError(DashboardError):
    """A course, student, faculty or faculty member ID does not resolve."""

    status = 404


__all__ = ["DashboardError", "ValidationError", "NotFoundError"]
