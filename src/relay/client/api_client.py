"""Authenticated API client.

Wires the token store, auth service, decorator, refresh coordinator and
dispatcher together behind an httpx-style interface. This is the object
application code talks to.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from relay.auth.client.models.accounts import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
)
from relay.auth.client.services.auth import AuthService
from relay.auth.client.token_store import TokenStore
from relay.client.coordinator import RefreshCoordinator, TokenRefresher
from relay.client.decorator import AuthDecorator
from relay.client.dispatcher import Dispatcher
from relay.client.models import RequestDescriptor
from relay.config import ClientConfig

logger = logging.getLogger(__name__)


class ApiClient:
    """HTTP client that keeps the session's access token fresh.

    Usage:
        async with ApiClient(ClientConfig.from_env()) as client:
            await client.login(LoginRequest(email=..., password=...))
            response = await client.get("/api/v1/tokens/balance")

    Failures are raised, see ``Dispatcher.send``. On ``SessionExpiredError``
    the tokens are already gone and the user must log in again.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        token_store: TokenStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        auth_service: AuthService | None = None,
        refresher: TokenRefresher | None = None,
    ):
        """Initialize API client.

        Args:
            config: Client configuration, defaults to ``ClientConfig()``
            token_store: Shared token store, a fresh one if omitted
            http_client: HTTP client for API calls
            auth_service: Service for login, registration and refresh
            refresher: Override for the refresh operation, defaults to the
                auth service
        """
        self.config = config or ClientConfig()
        self.token_store = token_store or TokenStore()

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=self.config.default_headers,
            timeout=self.config.timeout,
        )
        self.auth_service = auth_service or AuthService(self.config, self.token_store)

        self.coordinator = RefreshCoordinator(
            self.token_store, refresher or self.auth_service
        )
        self.decorator = AuthDecorator(
            self.token_store, self.config.unauthenticated_paths
        )
        self.dispatcher = Dispatcher(self._http_client, self.decorator, self.coordinator)

    # ================================
    # Requests
    # ================================

    async def send(self, request: RequestDescriptor) -> httpx.Response:
        return await self.dispatcher.send(request)

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        descriptor = RequestDescriptor(
            method=method.upper(),
            path=path,
            headers=dict(headers or {}),
            body=body,
            params=params,
        )
        return await self.send(descriptor)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    # ================================
    # Session
    # ================================

    async def login(self, login_request: LoginRequest) -> AuthResponse:
        auth_response = await self.auth_service.login(login_request)
        await self.coordinator.start_session(
            auth_response.access_token, auth_response.refresh_token
        )
        logger.info(f"Logged in as {auth_response.user.email}")
        return auth_response

    async def register(self, register_request: RegisterRequest) -> AuthResponse:
        auth_response = await self.auth_service.register(register_request)
        await self.coordinator.start_session(
            auth_response.access_token, auth_response.refresh_token
        )
        logger.info(f"Registered and logged in as {auth_response.user.email}")
        return auth_response

    async def logout(self) -> None:
        await self.coordinator.logout()

    @property
    def is_authenticated(self) -> bool:
        return self.token_store.get() is not None

    # ================================
    # Lifecycle
    # ================================

    async def close(self) -> None:
        """Close owned HTTP clients."""
        if self._owns_http_client:
            await self._http_client.aclose()
        await self.auth_service.close()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
