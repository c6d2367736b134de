"""Attaches the session's access token to outgoing requests."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from relay.auth.client.token_store import TokenStore
from relay.client.models import RequestDescriptor, bearer

logger = logging.getLogger(__name__)


class AuthDecorator:
    """Adds ``Authorization: Bearer <token>`` to non-exempt requests.

    Exempt paths (login, registration, refresh) never carry a token, so a
    stale token cannot leak into the calls that establish or renew a
    session. A path is exempt when it contains any allowlisted path, which
    also covers absolute URLs.
    """

    def __init__(
        self,
        token_store: TokenStore,
        unauthenticated_paths: Iterable[str],
    ):
        self._token_store = token_store
        self._unauthenticated_paths = tuple(unauthenticated_paths)

    def is_exempt(self, path: str) -> bool:
        return any(exempt in path for exempt in self._unauthenticated_paths)

    def apply(self, request: RequestDescriptor) -> RequestDescriptor:
        """Attach the current token to the request if it needs one."""
        if self.is_exempt(request.path):
            return request

        token = self._token_store.get()
        if token:
            request.headers["Authorization"] = bearer(token)
        return request
