"""
Unified exception classes for the service layer.

Each service raises subclasses of these categories (e.g. ProductNotFoundError
is a NotFoundError) so routers and the app-wide handler only need to know
the category to pick the HTTP status.
"""


class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed or missing input."""

    def __init__(self, message: str):
        super().__init__(message, 400)


class NotFoundError(ServiceError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class ConflictError(ServiceError):
    """Request is well-formed but clashes with the current state."""

    def __init__(self, message: str):
        super().__init__(message, 409)


class DataAccessError(ServiceError):
    """
    The database failed. The message is generic and safe to return to
    clients; the original exception is kept in `detail` for server logs.
    """

    def __init__(self, message: str, detail: str = ""):
        self.detail = detail
        super().__init__(message, 500)


class SweepCycleError(ServiceError):
    """One expiry sweep cycle failed. Only ever logged."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Reservation sweep failed: {detail}", 500)
