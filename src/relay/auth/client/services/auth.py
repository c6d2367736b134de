"""Authentication backend service.

Talks to the login, registration and token refresh endpoints. Uses its own
HTTP client so none of these calls pass through the authenticated
dispatcher and its refresh handling.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, ValidationError

from relay.auth.client.models.accounts import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
)
from relay.auth.client.models.errors import (
    LoginError,
    RegistrationError,
    TokenRefreshError,
    extract_error_detail,
)
from relay.auth.client.models.tokens import RefreshTokenRequest, TokenResponse
from relay.auth.client.token_store import TokenStore
from relay.config import ClientConfig

logger = logging.getLogger(__name__)


class AuthService:
    """Performs login, registration and access token refresh.

    Session tokens are returned to the caller rather than written to the
    store; the refresh coordinator owns every write to the token store.
    The store is only read here, to fetch the refresh credential.
    """

    def __init__(
        self,
        config: ClientConfig,
        token_store: TokenStore,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize auth service.

        Args:
            config: Client configuration with base URL and auth paths
            token_store: Store to read the refresh credential from
            http_client: Optional preconfigured HTTP client
        """
        self.config = config
        self._token_store = token_store
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
        )

    async def login(self, login_request: LoginRequest) -> AuthResponse:
        """Exchange credentials for a session.

        Raises:
            LoginError: If the credentials are rejected or the call fails
        """
        logger.debug(f"Logging in as {login_request.email}")
        try:
            return await self._post_for_session(
                self.config.login_path, login_request
            )
        except _SessionRequestError as e:
            logger.error(f"Login failed: {e}")
            raise LoginError(
                e.message or "Login failed. Please check your credentials."
            ) from e.__cause__

    async def register(self, register_request: RegisterRequest) -> AuthResponse:
        """Create an account and return its first session.

        Raises:
            RegistrationError: If registration is rejected or the call fails
        """
        logger.debug(f"Registering account {register_request.email}")
        try:
            return await self._post_for_session(
                self.config.register_path, register_request
            )
        except _SessionRequestError as e:
            logger.error(f"Registration failed: {e}")
            raise RegistrationError(
                e.message or "Registration failed. Please try again."
            ) from e.__cause__

    async def refresh_token(self) -> str | None:
        """Exchange the stored refresh credential for a new access token.

        Returns:
            The new access token, or None when no refresh credential is held

        Raises:
            TokenRefreshError: If the refresh exchange fails for any reason
        """
        if not self._token_store.state.can_refresh():
            logger.info("No refresh token available")
            return None

        refresh_token = self._token_store.get_refresh_token()

        logger.debug(f"Refreshing access token at {self.config.refresh_path}")

        try:
            response = await self._http_client.post(
                self.config.refresh_path,
                json=RefreshTokenRequest(refresh=refresh_token).model_dump(),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"HTTP error during token refresh: {e}") from e

        if not response.is_success:
            detail = extract_error_detail(response)
            logger.warning(
                f"Token refresh failed with {response.status_code}: {detail}"
            )
            raise TokenRefreshError(
                f"Token refresh failed with {response.status_code}: {detail}"
            )

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenRefreshError(f"Invalid token response format: {e}") from e

        if not token_response.is_success():
            raise TokenRefreshError("No access token received in refresh response")

        logger.info("Token refreshed successfully")
        return token_response.access_token

    async def _post_for_session(self, path: str, payload: BaseModel) -> AuthResponse:
        try:
            response = await self._http_client.post(
                path,
                json=payload.model_dump(mode="json"),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise _SessionRequestError(None) from e

        if not response.is_success:
            # Only a server-supplied message is surfaced; otherwise the
            # caller's default message is used.
            raise _SessionRequestError(extract_error_detail(response, default=""))

        try:
            return AuthResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise _SessionRequestError(None) from e

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self._http_client.aclose()


class _SessionRequestError(Exception):
    def __init__(self, message: str | None):
        super().__init__(message or "session request failed")
        self.message = message or None
