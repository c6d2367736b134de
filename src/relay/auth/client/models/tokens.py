"""Token state and token endpoint models.

Contains the mutable session token state and the wire models exchanged
with the refresh endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel


@dataclass
class TokenState:
    """Mutable token state for the current session.

    Mutable so a refresh can swap the access token in place without
    recreating the store.
    """

    access_token: str | None = None
    refresh_token: str | None = None

    def can_refresh(self) -> bool:
        """Check if a refresh credential is available."""
        return bool(self.refresh_token)

    def clear(self) -> None:
        """Clear all token data."""
        self.access_token = None
        self.refresh_token = None


class RefreshTokenRequest(BaseModel):
    """Body of the refresh endpoint call."""

    refresh: str


class TokenResponse(BaseModel):
    """Refresh endpoint response.

    ``access_token`` is optional so that a response without one can be
    reported as a refresh failure instead of a validation error.
    """

    access_token: str | None = None

    def is_success(self) -> bool:
        return bool(self.access_token)
