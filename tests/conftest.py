import asyncio
from collections.abc import Callable

import httpx
import pytest

from relay.auth.client.models.tokens import TokenState
from relay.auth.client.token_store import TokenStore

BASE_URL = "http://api.test"


class FakeRefresher:
    """Refresher that blocks until released, counting its invocations."""

    def __init__(
        self, token: str | None = "T2", error: BaseException | None = None
    ):
        self.token = token
        self.error = error
        self.calls = 0
        self.release = asyncio.Event()

    async def refresh_token(self) -> str | None:
        self.calls += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.token


class FakeBackend:
    """API backend that only accepts one bearer token.

    Auth endpoints always answer 401 so a test can check they are never
    retried through the refresh flow.
    """

    def __init__(self, valid_token: str = "T2"):
        self.valid_token = valid_token
        self.requests: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await asyncio.sleep(0)
        if request.url.path.startswith("/auth/"):
            return httpx.Response(401, json={"detail": "Invalid credentials"})
        if request.url.path == "/boom":
            return httpx.Response(500, json={"detail": "Server exploded"})
        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"detail": "Token expired"})
        return httpx.Response(200, json={"path": request.url.path})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=BASE_URL, transport=httpx.MockTransport(self.handler)
        )

    def requests_for(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


async def wait_until_true(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


@pytest.fixture
def wait_until():
    return wait_until_true


@pytest.fixture
def refresher():
    return FakeRefresher()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def token_store():
    """Store holding an expired access token and a usable refresh token."""
    return TokenStore(TokenState(access_token="T1", refresh_token="R1"))
