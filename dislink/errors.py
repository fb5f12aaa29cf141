"""
Domain errors for the connection and needs core.

Services raise these; the app renders them with a single exception handler
(see main.py). Each error carries its HTTP status and a stable error code.
"""

from __future__ import annotations

import math

from fastapi import status


class DislinkError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "error"
    default_detail: str = "Request failed."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class NotFound(DislinkError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_detail = "Not found."


class Forbidden(DislinkError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_detail = "You are not allowed to do that."


class AlreadyTerminal(DislinkError):
    """A state transition was attempted out of a terminal state."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "already_terminal"
    default_detail = "This item can no longer change state."


class AlreadyRedeemed(AlreadyTerminal):
    error_code = "already_redeemed"
    default_detail = "This code has already been redeemed."


class CodeExpired(DislinkError):
    status_code = status.HTTP_410_GONE
    error_code = "code_expired"
    default_detail = "This code has expired. Ask for a new one."


class InvalidInput(DislinkError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "invalid_input"
    default_detail = "Invalid input."


class InvalidEmail(InvalidInput):
    error_code = "invalid_email"
    default_detail = "Invalid email format."


class Throttled(DislinkError):
    """Rate limit hit. Carries the remaining window time."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "rate_limited"
    default_detail = "Too many requests. Please try again later."

    def __init__(self, retry_after: float, detail: str | None = None):
        super().__init__(detail)
        self.retry_after = retry_after

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.retry_after))

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class Transient(DislinkError):
    """Network-class failure. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "transient"
    default_detail = "Service temporarily unavailable. Please try again."


class AuthInvalid(DislinkError):
    """Credential-class failure. Never retried."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "auth_invalid"
    default_detail = "Your session is no longer valid. Please sign in again."


class InvalidCredentials(AuthInvalid):
    """The identity provider rejected the credentials. Deliberately unspecific."""

    error_code = "invalid_credentials"
    default_detail = "Invalid credentials."
