"""Authenticated HTTP request pipeline.

Wraps an httpx.AsyncClient with three stages:

- Outbound: refresh a stale token (single-flight) and attach credentials.
- Inbound: on a 401, refresh once and re-send the original request once.
- Normalization: every failure leaves as a ScoreAPIError.

Each pipeline owns its own refresh slot, so independent clients never share
refresh state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from scoreapi.auth.token_manager import TokenManager
from scoreapi.models.errors import (
    ErrorCode,
    ScoreAPIError,
    error_from_response,
    error_from_transport,
)
from scoreapi.models.tokens import TenantType, TokenRefreshResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000

REFRESH_ENDPOINTS: dict[TenantType, str] = {
    TenantType.USER: "/users/refresh-token",
    TenantType.CUSTOMER: "/customers/refresh-token",
    TenantType.DIRECT: "/direct/refresh-token",
}

# Set on an httpx.Request once it has been re-sent after a 401
RETRY_MARKER = "scoreapi.retried"


def _retrieve_refresh_error(task: asyncio.Task) -> None:
    # Marks the error as retrieved when every waiter was cancelled
    if not task.cancelled():
        task.exception()


@dataclass(frozen=True)
class RequestOptions:
    """Per-call pipeline flags.

    skip_auth: send without a bearer token and never refresh on 401
    use_customer_token: attach the ctoken header
    customer_token: ctoken value for this call, overriding the client's
    """

    skip_auth: bool = False
    use_customer_token: bool = False
    customer_token: str | None = None


class RequestPipeline:
    """HTTP transport with transparent bearer auth and token refresh."""

    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        timeout: float = DEFAULT_TIMEOUT_MS,
        headers: dict[str, str] | None = None,
        customer_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize request pipeline.

        Args:
            base_url: API root every request path is joined to
            token_manager: Source and sink of the stored token record
            timeout: Request timeout in milliseconds
            headers: Extra headers sent with every request
            customer_token: Secondary tenant token for ctoken calls
            transport: Optional httpx transport, mainly for tests
        """
        self.token_manager = token_manager
        self._customer_token = customer_token
        self._refresh_task: asyncio.Task[TokenRefreshResponse] | None = None
        self._http_client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout / 1000,
            headers={"Content-Type": "application/json", **(headers or {})},
            transport=transport,
        )

    @property
    def customer_token(self) -> str | None:
        return self._customer_token

    def set_customer_token(self, token: str | None) -> None:
        self._customer_token = token

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """Send a request through the pipeline and return the decoded body.

        Raises:
            ScoreAPIError: On any HTTP, transport or authentication failure
        """
        options = options or RequestOptions()
        request = self._http_client.build_request(
            method, url, params=params, json=json
        )

        await self._authorize(request, options)
        response = await self._send(request)

        if response.status_code == 401 and not options.skip_auth:
            response = await self._retry_unauthorized(request, response)

        if response.is_error:
            raise error_from_response(response)

        return self._decode(response)

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        return await self.request("GET", url, params=params, options=options)

    async def post(
        self,
        url: str,
        data: Any = None,
        options: RequestOptions | None = None,
    ) -> Any:
        return await self.request("POST", url, json=data, options=options)

    async def put(
        self,
        url: str,
        data: Any = None,
        options: RequestOptions | None = None,
    ) -> Any:
        return await self.request("PUT", url, json=data, options=options)

    async def patch(
        self,
        url: str,
        data: Any = None,
        options: RequestOptions | None = None,
    ) -> Any:
        return await self.request("PATCH", url, json=data, options=options)

    async def delete(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        return await self.request("DELETE", url, params=params, options=options)

    async def refresh_tokens(self) -> TokenRefreshResponse:
        """Refresh the stored tokens, sharing one refresh among all callers.

        While a refresh is in flight every caller awaits that same task and
        sees the same result or error. A caller that stops waiting does not
        cancel the refresh for the others.

        Raises:
            ScoreAPIError: TOKEN_REQUIRED if no refresh token is stored,
                TOKEN_REFRESH_FAILED if the refresh endpoint rejects it
        """
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._run_refresh())
            self._refresh_task.add_done_callback(_retrieve_refresh_error)
        else:
            logger.debug("Joining in-flight token refresh")
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> TokenRefreshResponse:
        try:
            return await self._perform_refresh()
        finally:
            self._refresh_task = None

    async def _perform_refresh(self) -> TokenRefreshResponse:
        refresh_token = await self.token_manager.get_refresh_token()
        tenant_type = await self.token_manager.get_tenant_type() or TenantType.USER

        if not refresh_token:
            raise ScoreAPIError("No refresh token available", ErrorCode.TOKEN_REQUIRED)

        endpoint = REFRESH_ENDPOINTS[tenant_type]
        logger.debug(f"Refreshing {tenant_type.value} tokens via {endpoint}")

        try:
            data = await self.get(
                endpoint,
                params={"token": refresh_token},
                options=RequestOptions(skip_auth=True),
            )
        except ScoreAPIError as e:
            logger.warning(f"Token refresh failed: {e.code.value} {e.message}")
            raise ScoreAPIError(
                f"Token refresh failed: {e.message}",
                ErrorCode.TOKEN_REFRESH_FAILED,
                status_code=e.status_code,
                details=e.details,
            ) from e

        try:
            refreshed = TokenRefreshResponse.model_validate(data)
        except ValidationError as e:
            raise ScoreAPIError(
                "Invalid token refresh response",
                ErrorCode.TOKEN_REFRESH_FAILED,
                details=data,
            ) from e

        await self.token_manager.save_tokens(
            refreshed.access_token,
            refreshed.refresh_token,
            refreshed.expires_in,
            tenant_type,
        )
        logger.info(f"Refreshed {tenant_type.value} access token")
        return refreshed

    async def _authorize(self, request: httpx.Request, options: RequestOptions) -> None:
        """Outbound stage: make sure the token is fresh, then attach headers."""
        if not options.skip_auth:
            if await self.token_manager.is_expired():
                try:
                    await self.refresh_tokens()
                except ScoreAPIError as e:
                    if e.code is ErrorCode.TOKEN_REQUIRED:
                        logger.debug(f"No stored session for {request.method} {request.url.path}")
                        raise
                    # Keep existing tokens; the request succeeds or fails on its own
                    logger.warning(
                        f"Proactive token refresh failed ({e.code.value}), "
                        f"sending request with current credentials"
                    )

            access_token = await self.token_manager.get_access_token()
            if access_token:
                request.headers["Authorization"] = f"Bearer {access_token}"

        if options.use_customer_token:
            customer_token = options.customer_token or self._customer_token
            if customer_token:
                request.headers["ctoken"] = customer_token

    async def _retry_unauthorized(
        self, request: httpx.Request, response: httpx.Response
    ) -> httpx.Response:
        """Inbound stage: refresh once and re-send the request once.

        Returns the response to surface: the original 401 when the request
        was already retried, otherwise the retried response.
        """
        if request.extensions.get(RETRY_MARKER):
            logger.debug(f"{request.method} {request.url.path} still unauthorized after retry")
            return response

        request.extensions[RETRY_MARKER] = True

        # Another caller may have rotated the tokens while this request was in flight
        access_token = await self.token_manager.get_access_token()
        if access_token and request.headers.get("Authorization") != f"Bearer {access_token}":
            request.headers["Authorization"] = f"Bearer {access_token}"
            logger.debug(f"Retrying {request.method} {request.url.path} with newer stored token")
            return await self._send(request)

        try:
            await self.refresh_tokens()
        except ScoreAPIError as e:
            logger.error(f"Token refresh after 401 failed, clearing tokens: {e.code.value}")
            await self.token_manager.clear_tokens()
            if e.code is ErrorCode.TOKEN_REQUIRED:
                raise error_from_response(response) from e
            raise ScoreAPIError(
                "Session expired, re-authentication required",
                ErrorCode.TOKEN_REFRESH_FAILED,
                status_code=response.status_code,
                details=e.details,
            ) from e

        access_token = await self.token_manager.get_access_token()
        if not access_token:
            return response

        request.headers["Authorization"] = f"Bearer {access_token}"
        logger.debug(f"Retrying {request.method} {request.url.path} with refreshed token")
        return await self._send(request)

    async def _send(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self._http_client.send(request)
        except httpx.TransportError as e:
            logger.warning(f"{request.method} {request.url.path} failed: {e!r}")
            raise error_from_transport(e) from e

        logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()

    async def __aenter__(self) -> RequestPipeline:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
