"""In-memory store for the session's access and refresh tokens."""

from __future__ import annotations

import logging

from relay.auth.client.models.tokens import TokenState

logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the current access token and refresh credential.

    Reads and writes are single attribute assignments, so a read never
    observes a half-written token. Coordination between concurrent
    refreshes lives in the refresh coordinator, not here.
    """

    def __init__(self, state: TokenState | None = None):
        self._state = state or TokenState()

    @property
    def state(self) -> TokenState:
        return self._state

    def get(self) -> str | None:
        """Get the current access token, or None when unauthenticated."""
        return self._state.access_token

    def set(self, token: str) -> None:
        """Replace the access token, keeping the refresh credential."""
        self._state.access_token = token
        logger.debug("Access token updated")

    def get_refresh_token(self) -> str | None:
        return self._state.refresh_token

    def set_session(self, access_token: str, refresh_token: str | None) -> None:
        """Store a freshly established session (login or registration)."""
        self._state.access_token = access_token
        self._state.refresh_token = refresh_token
        logger.debug("Session tokens stored")

    def clear(self) -> None:
        """Drop both tokens."""
        self._state.clear()
        logger.debug("Token store cleared")
