import asyncio
import json

import httpx
import pytest

from relay.auth.client.models.accounts import LoginRequest
from relay.auth.client.models.errors import SessionExpiredError, TokenRefreshError
from relay.auth.client.services.auth import AuthService
from relay.auth.client.token_store import TokenStore
from relay.client.api_client import ApiClient
from relay.config import ClientConfig

USER = {
    "id": 7,
    "email": "ada@example.com",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-01-01T00:00:00Z",
}


class TestConcurrentExpiry:
    """Three requests hit an expired token at the same moment."""

    @pytest.fixture(autouse=True)
    def setup(self, token_store, refresher, backend, wait_until):
        self.token_store = token_store
        self.refresher = refresher
        self.backend = backend
        self.wait_until = wait_until
        self.client = ApiClient(
            ClientConfig(base_url="http://api.test"),
            token_store=token_store,
            http_client=backend.client(),
            refresher=refresher,
        )

    async def _fire_all(self) -> list:
        tasks = [
            asyncio.create_task(self.client.get(path)) for path in ("/a", "/b", "/c")
        ]
        await self.wait_until(lambda: self.client.coordinator.pending_count == 2)
        self.refresher.release.set()
        return await asyncio.gather(*tasks, return_exceptions=True)

    async def test_all_replayed_with_new_token(self):
        """Test every request is replayed once with the refreshed token."""
        # Act
        results = await self._fire_all()

        # Assert
        assert self.refresher.calls == 1
        assert [r.json()["path"] for r in results] == ["/a", "/b", "/c"]
        for path in ("/a", "/b", "/c"):
            sent = self.backend.requests_for(path)
            assert len(sent) == 2
            assert sent[0].headers["Authorization"] == "Bearer T1"
            assert sent[1].headers["Authorization"] == "Bearer T2"
        assert self.token_store.get() == "T2"
        assert self.client.is_authenticated

    async def test_all_expire_when_refresh_fails(self):
        """Test every request expires and the store is emptied."""
        # Arrange
        self.refresher.error = TokenRefreshError("refresh token expired")

        # Act
        results = await self._fire_all()

        # Assert
        assert self.refresher.calls == 1
        assert all(isinstance(r, SessionExpiredError) for r in results)
        for path in ("/a", "/b", "/c"):
            assert len(self.backend.requests_for(path)) == 1
        assert self.token_store.get() is None
        assert not self.client.is_authenticated


class TestSessionLifecycle:
    def setup_method(self):
        self.auth_requests: list[httpx.Request] = []

        async def auth_handler(request: httpx.Request) -> httpx.Response:
            self.auth_requests.append(request)
            if request.url.path == "/auth/login/":
                return httpx.Response(
                    200,
                    json={
                        "access_token": "A1",
                        "refresh_token": "R1",
                        "user": USER,
                    },
                )
            if request.url.path == "/auth/token/refresh/":
                return httpx.Response(200, json={"access_token": "A2"})
            return httpx.Response(404)

        api_calls = {"count": 0}

        async def api_handler(request: httpx.Request) -> httpx.Response:
            api_calls["count"] += 1
            # First call is rejected to force a refresh
            if api_calls["count"] == 1:
                return httpx.Response(401)
            return httpx.Response(
                200, json={"auth": request.headers.get("Authorization")}
            )

        config = ClientConfig(base_url="http://api.test")
        token_store = TokenStore()
        auth_service = AuthService(
            config,
            token_store,
            http_client=httpx.AsyncClient(
                base_url=config.base_url, transport=httpx.MockTransport(auth_handler)
            ),
        )
        self.client = ApiClient(
            config,
            token_store=token_store,
            http_client=httpx.AsyncClient(
                base_url=config.base_url, transport=httpx.MockTransport(api_handler)
            ),
            auth_service=auth_service,
        )

    async def test_login_stores_session(self):
        """Test login stores both tokens."""
        # Act
        auth_response = await self.client.login(
            LoginRequest(email="ada@example.com", password="secret")
        )

        # Assert
        assert auth_response.user.first_name == "Ada"
        assert self.client.token_store.get() == "A1"
        assert self.client.token_store.get_refresh_token() == "R1"
        assert "Authorization" not in self.auth_requests[0].headers

    async def test_refresh_uses_stored_refresh_token(self):
        """Test a 401 after login refreshes with the login's refresh token."""
        # Arrange
        await self.client.login(LoginRequest(email="ada@example.com", password="x"))

        # Act
        response = await self.client.get("/api/v1/dashboard")

        # Assert
        assert response.json() == {"auth": "Bearer A2"}
        refresh_call = self.auth_requests[-1]
        assert refresh_call.url.path == "/auth/token/refresh/"
        assert json.loads(refresh_call.content) == {"refresh": "R1"}

    async def test_logout_clears_tokens(self):
        """Test logout removes both tokens."""
        # Arrange
        await self.client.login(LoginRequest(email="ada@example.com", password="x"))

        # Act
        await self.client.logout()

        # Assert
        assert not self.client.is_authenticated
        assert self.client.token_store.get_refresh_token() is None

    async def test_context_manager_leaves_injected_clients_open(self):
        """Test injected HTTP clients are left for their owner to close."""
        # Act
        async with self.client as client:
            pass

        # Assert
        assert client is self.client
        assert self.client.dispatcher._http_client.is_closed is False
        assert self.client.auth_service._http_client.is_closed is False


class TestClientLifecycle:
    async def test_context_manager_closes_owned_clients(self):
        """Test clients created by ApiClient are closed on exit."""
        # Act
        async with ApiClient() as client:
            pass

        # Assert
        assert client.dispatcher._http_client.is_closed
        assert client.auth_service._http_client.is_closed
