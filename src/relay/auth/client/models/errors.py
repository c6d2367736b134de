"""Exception hierarchy for the authenticated client.

Separates non-auth API failures from the two terminal auth outcomes
(unauthorized vs. session expired) so callers can react to each.
"""

from __future__ import annotations

from typing import Any

import httpx


class RelayError(Exception):
    """Base exception for all client errors."""

    pass


class ApiError(RelayError):
    """Raised when the server answers with a non-success status."""

    def __init__(self, response: httpx.Response, message: str | None = None):
        self.response = response
        self.status_code = response.status_code
        self.detail = extract_error_detail(response)
        super().__init__(
            message or f"Request failed with status {self.status_code}: {self.detail}"
        )


class AuthError(RelayError):
    """Base exception for authentication failures."""

    pass


class UnauthorizedError(AuthError, ApiError):
    """Raised for a 401 that cannot be recovered by refreshing.

    Covers wrong credentials on the login endpoint, a 401 from the refresh
    endpoint itself, and a request that was already retried once.
    """

    def __init__(self, response: httpx.Response):
        ApiError.__init__(self, response, f"Unauthorized: {extract_error_detail(response)}")


class SessionExpiredError(AuthError):
    """Raised when the session cannot be renewed.

    Callers should discard local session state and re-authenticate.
    """

    pass


class TokenRefreshError(AuthError):
    """Raised when the refresh token exchange fails."""

    pass


class LoginError(AuthError):
    """Raised when login fails."""

    pass


class RegistrationError(AuthError):
    """Raised when account registration fails."""

    pass


def extract_error_detail(
    response: httpx.Response, default: str | None = None
) -> str:
    """Pull a human readable message out of an error response body.

    Understands ``{"detail": "..."}``, ``{"message": "..."}`` and
    field-keyed ``{"errors": {"field": ["msg", ...]}}`` payloads.
    """
    if default is None:
        default = response.reason_phrase or "Request failed"
    try:
        data: Any = response.json()
    except ValueError:
        return default

    if not isinstance(data, dict):
        return default

    detail = data.get("detail") or data.get("message")
    if isinstance(detail, str) and detail:
        return detail

    errors = data.get("errors")
    if isinstance(errors, dict) and errors:
        messages: list[str] = []
        for value in errors.values():
            if isinstance(value, list):
                messages.extend(str(item) for item in value)
            else:
                messages.append(str(value))
        return " ".join(messages)

    return default
