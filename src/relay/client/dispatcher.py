"""Sends request descriptors and classifies their responses."""

from __future__ import annotations

import logging

import httpx

from relay.auth.client.models.errors import ApiError, UnauthorizedError
from relay.client.coordinator import RefreshCoordinator
from relay.client.decorator import AuthDecorator
from relay.client.models import RequestDescriptor

logger = logging.getLogger(__name__)


class Dispatcher:
    """Decorates, transmits and classifies a single request.

    A 401 on a fresh, non-exempt request is handed to the refresh
    coordinator, which resubmits it through ``send`` at most once. Every
    other failure goes straight back to the caller.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        decorator: AuthDecorator,
        coordinator: RefreshCoordinator,
    ):
        self._http_client = http_client
        self._decorator = decorator
        self._coordinator = coordinator

    async def send(self, request: RequestDescriptor) -> httpx.Response:
        """Send a request, recovering from one expired access token.

        Returns:
            The successful (2xx) response

        Raises:
            UnauthorizedError: 401 that refreshing cannot fix
            SessionExpiredError: The session could not be refreshed
            ApiError: Any other non-success status
            httpx.RequestError: Network failures, unchanged
        """
        self._decorator.apply(request)
        response = await self._transmit(request)

        if response.is_success:
            return response

        if response.status_code == httpx.codes.UNAUTHORIZED:
            if request.retried or self._decorator.is_exempt(request.path):
                logger.debug(
                    f"Unrecoverable 401 for {request.method} {request.path} "
                    f"(retried={request.retried})"
                )
                raise UnauthorizedError(response)
            return await self._coordinator.handle_unauthorized(request, self.send)

        raise ApiError(response)

    async def _transmit(self, request: RequestDescriptor) -> httpx.Response:
        logger.debug(f"{request.method} {request.path}")
        body = request.body
        if body is None or isinstance(body, (str, bytes)):
            return await self._http_client.request(
                request.method,
                request.path,
                headers=request.headers,
                params=request.params,
                content=body,
            )
        return await self._http_client.request(
            request.method,
            request.path,
            headers=request.headers,
            params=request.params,
            json=body,
        )
