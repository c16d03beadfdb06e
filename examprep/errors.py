"""
Error taxonomy of the service. Each error carries the HTTP status and a
message that is safe to show to clients.
"""

from __future__ import annotations


class MockTestError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MockTestError):
    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(MockTestError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(MockTestError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(MockTestError):
    status_code = 404
    default_message = "Resource not found"


class InvalidStateError(MockTestError):
    status_code = 400
    default_message = "Test session has ended"


class InternalError(MockTestError):
    status_code = 500


class RemoteFileError(InternalError):
    """Raised when a file cannot be resolved or downloaded from Telegram."""


class TokenExpiredError(UnauthorizedError):
    default_message = "Token expired"


class InvalidTokenError(UnauthorizedError):
    default_message = "Invalid token"
