"""Single-flight access token refresh.

When several in-flight requests hit a 401 at once, only the first one
refreshes the token. The rest park on a future until that refresh settles,
then either replay with the new token or fail with the same session expiry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx

from relay.auth.client.models.errors import SessionExpiredError
from relay.auth.client.token_store import TokenStore
from relay.client.models import PendingWaiter, RefreshState, RequestDescriptor

logger = logging.getLogger(__name__)

Replay = Callable[[RequestDescriptor], Awaitable[httpx.Response]]


class TokenRefresher(Protocol):
    """Anything that can exchange the refresh credential for a new token."""

    async def refresh_token(self) -> str | None:
        """Return a new access token.

        Returns None when there is nothing to refresh with. Raises
        TokenRefreshError when the exchange fails.
        """
        ...


class RefreshCoordinator:
    """Owns the refresh state machine and its waiter queue.

    State, queue and session epoch are only touched while holding
    ``_lock``. The lock is never held across the refresh call itself, so
    newly failing requests can still join the queue while it runs.
    """

    def __init__(self, token_store: TokenStore, refresher: TokenRefresher):
        self._token_store = token_store
        self._refresher = refresher
        self._lock = asyncio.Lock()
        self._state = RefreshState.IDLE
        self._waiters: list[PendingWaiter] = []
        # Bumped on login and logout; a refresh finishing in an older epoch
        # is discarded.
        self._epoch = 0
        self._refresh_task: asyncio.Task[str] | None = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._waiters)

    async def handle_unauthorized(
        self, request: RequestDescriptor, replay: Replay
    ) -> httpx.Response:
        """Recover a request that failed with a refreshable 401.

        Either starts a refresh (first failure) or joins the one already
        running, then resubmits the request once through ``replay``.

        Raises:
            SessionExpiredError: If the refresh fails
        """
        async with self._lock:
            if self._state is RefreshState.REFRESHING:
                waiter = PendingWaiter(
                    request, asyncio.get_running_loop().create_future()
                )
                self._waiters.append(waiter)
                logger.debug(
                    f"Queued {request.method} {request.path} behind in-flight "
                    f"refresh ({len(self._waiters)} waiting)"
                )
            else:
                waiter = None
                self._state = RefreshState.REFRESHING
                epoch = self._epoch

        if waiter is not None:
            token = await waiter.future
            request.mark_retried(token)
            return await replay(request)

        token = await self._run_refresh(epoch)
        logger.debug(f"Retrying {request.method} {request.path} with new token")
        request.mark_retried(token)
        return await replay(request)

    async def _run_refresh(self, epoch: int) -> str:
        # The refresh runs in its own task so cancelling the request that
        # started it does not end the session for everyone else.
        task = asyncio.create_task(self._refresh_cycle(epoch), name="token-refresh")
        self._refresh_task = task
        task.add_done_callback(self._on_refresh_done)
        return await asyncio.shield(task)

    async def _refresh_cycle(self, epoch: int) -> str:
        logger.info("Access token rejected, refreshing")
        try:
            token = await self._refresher.refresh_token()
        except asyncio.CancelledError:
            await self._finish(epoch, None)
            raise
        except Exception as e:
            logger.error(f"Error during token refresh: {e}")
            await self._finish(epoch, None)
            raise SessionExpiredError("Unable to refresh token. Session expired.") from e

        token = await self._finish(epoch, token)
        if not token:
            raise SessionExpiredError("Unable to refresh token. Session expired.")
        return token

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        # Retrieve the outcome so a failure nobody awaited is not reported
        # as unhandled.
        if not task.cancelled():
            task.exception()

    async def _finish(self, epoch: int, token: str | None) -> str | None:
        """Apply the refresh outcome and release every queued waiter."""
        async with self._lock:
            if epoch != self._epoch:
                # Session was replaced or ended while refreshing; leave the
                # store to whoever changed it.
                logger.warning("Discarding refresh outcome from a previous session")
                token = None
            elif token:
                self._token_store.set(token)
            else:
                self._token_store.clear()

            waiters, self._waiters = self._waiters, []
            self._state = RefreshState.IDLE

        if token:
            logger.info(f"Token refreshed, replaying {len(waiters)} queued requests")
        else:
            logger.error(
                f"Refresh failed, expiring session for {len(waiters)} queued requests"
            )

        for waiter in waiters:
            if waiter.future.done():
                # Caller gave up while waiting.
                continue
            if token:
                waiter.future.set_result(token)
            else:
                waiter.future.set_exception(
                    SessionExpiredError("Unable to refresh token. Session expired.")
                )
        return token

    async def start_session(self, access_token: str, refresh_token: str | None) -> None:
        """Store tokens for a newly established session."""
        async with self._lock:
            self._epoch += 1
            self._token_store.set_session(access_token, refresh_token)

    async def logout(self) -> None:
        """Clear the session, invalidating any refresh still in flight."""
        async with self._lock:
            self._epoch += 1
            self._token_store.clear()
        logger.info("User logged out, tokens removed")
