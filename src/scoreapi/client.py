"""ScoreAPI client facade.

Wires one token store, token manager and request pipeline per instance and
exposes the auth operations and feature modules on top of them.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scoreapi.auth.auth_client import AuthClient
from scoreapi.auth.storage import create_token_store
from scoreapi.auth.token_manager import TokenManager
from scoreapi.config import ClientConfig
from scoreapi.http.pipeline import RequestPipeline
from scoreapi.modules.alerts import AlertModule
from scoreapi.modules.identity import IdentityModule
from scoreapi.modules.report import ReportModule
from scoreapi.modules.score import ScoreModule
from scoreapi.modules.user import UserModule

logger = logging.getLogger(__name__)


class ScoreAPIClient:
    """Entry point for the ScoreAPI SDK.

    Each instance owns an independent session: its own stored tokens (per
    storage backend) and its own refresh coordination.

    Example:
        async with ScoreAPIClient(ClientConfig(base_url="https://api.example.com")) as api:
            await api.auth.user_login(UserLoginRequest("alice", "secret"))
            scores = await api.score.get_latest_scores()
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            config: Validated client configuration
            transport: Optional httpx transport, mainly for tests
        """
        self.config = config

        store = create_token_store(config.storage, config.storage_path)
        self._token_manager = TokenManager(store)
        self._http = RequestPipeline(
            config.base_url,
            self._token_manager,
            timeout=config.timeout,
            headers=config.headers,
            customer_token=config.customer_token,
            transport=transport,
        )

        self.auth = AuthClient(self._http, self._token_manager)
        self.user = UserModule(self._http)
        self.identity = IdentityModule(self._http)
        self.score = ScoreModule(self._http)
        self.report = ReportModule(self._http)
        self.alerts = AlertModule(self._http)

        logger.debug(f"ScoreAPI client created for {config.base_url}")

    @property
    def http(self) -> RequestPipeline:
        return self._http

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    def set_customer_token(self, token: str | None) -> None:
        self._http.set_customer_token(token)

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> ScoreAPIClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
