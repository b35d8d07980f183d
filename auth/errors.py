"""
auth/errors.py -- Exception taxonomy for the auth layer.

Every expected failure is an AuthError subclass carrying its HTTP status, a
machine-readable code and a client-safe message. api/main.py renders them
into the JSON envelope; auth/ itself never builds responses.

Subclasses of Unauthenticated and Forbidden keep the status of their parent
but carry a more specific code, so clients can tell "expired" from "invalid"
without parsing messages.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for expected, client-facing auth failures."""

    status_code: int = 400
    code: str = "bad_request"
    message: str = "Bad request."

    def __init__(self, message: str | None = None, **extra) -> None:
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)


class ValidationFailed(AuthError):
    code = "validation_error"
    message = "Validation failed."

    def __init__(self, errors: list[dict], message: str | None = None) -> None:
        super().__init__(message, errors=errors)
        self.errors = errors


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    message = "Email already registered."


class InvalidOrExpiredToken(AuthError):
    # Deliberately one message for unknown, mismatched and expired tokens.
    code = "invalid_or_expired_token"
    message = "Email verification token is invalid or has expired."


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthenticated"
    message = "Not authorized, please login."


class InvalidToken(Unauthenticated):
    code = "invalid_token"
    message = "Invalid token, please login again."


class ExpiredToken(Unauthenticated):
    code = "expired_token"
    message = "Token expired, please login again."


class InvalidCredentials(AuthError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password."


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    message = "You are not allowed to access this resource."


class AccountDeactivated(Forbidden):
    code = "account_deactivated"
    message = "Your account has been deactivated. Please contact support."


class NotApproved(Forbidden):
    code = "not_approved"
    message = "Your account is not yet approved by admin. Please wait for approval."


class PendingApproval(Forbidden):
    code = "pending_approval"
    message = "Your account is pending admin approval. You will be notified once approved."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, isPending=True)


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    message = "Not found."


class InternalError(AuthError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
