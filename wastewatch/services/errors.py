"""
Domain errors raised by the service layer.

Each error carries the HTTP status code it is reported with; the API error
handlers turn them into the standard failure envelope.
"""


class ServiceError(Exception):
    """Base class for errors with a user-facing message."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidInputError(ServiceError):
    """Missing or malformed input."""

    status_code = 400


class ForbiddenError(ServiceError):
    """Authenticated, but lacking the role or ownership required."""

    status_code = 403


class NotFoundError(ServiceError):
    """The requested resource does not exist."""

    status_code = 404


class UpstreamError(ServiceError):
    """The external detection service failed or could not be reached."""

    status_code = 500
