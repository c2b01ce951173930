"""Account profile and settings endpoints."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from scoreapi.http.pipeline import RequestOptions, RequestPipeline


class UserModule:
    def __init__(self, http: RequestPipeline):
        self.http = http

    async def get_profile(self) -> dict[str, Any]:
        return await self.http.get("/users")

    async def initialize(self, key: str | None = None) -> dict[str, Any]:
        """Fetch the UI configuration, optionally for a partner key.

        Served before login, so no bearer token is attached.
        """
        endpoint = f"/users/initialize/{quote(key, safe='')}" if key else "/users/initialize"
        return await self.http.get(endpoint, options=RequestOptions(skip_auth=True))

    async def update_email(self, email: str) -> None:
        await self.http.post("/users/change-email", {"email": email})

    async def update_password(self, payload: dict[str, Any]) -> None:
        await self.http.post("/users/change-password", payload)

    async def update_notifications(self, payload: dict[str, Any]) -> None:
        await self.http.post("/users/change-notifications", payload)

    async def update_recovery_question(self, payload: dict[str, Any]) -> None:
        await self.http.post("/users/change-recovery", payload)

    async def close_account(self) -> dict[str, Any]:
        return await self.http.post("/users/close-account")
