"""Identity verification endpoints (identity submission, DIT and SMFA)."""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import quote

from scoreapi.http.pipeline import RequestPipeline


class IdentityModule:
    def __init__(self, http: RequestPipeline):
        self.http = http

    async def submit_identity(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.http.post("/users/identity", payload)

    async def get_dit_challenge(self) -> dict[str, Any]:
        return await self.http.get("/users/dit-identity")

    async def submit_dit_verification(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.http.post("/users/dit-identity", payload)

    async def send_smfa_link(
        self, token: str, link_type: Literal["phone", "email"] = "phone"
    ) -> dict[str, Any]:
        """Send the SMFA verification link by SMS or email."""
        return await self.http.post(
            f"/users/smfa-send-link/{quote(token, safe='')}", {"type": link_type}
        )

    async def verify_smfa_status(self, token: str) -> dict[str, Any]:
        return await self.http.post(f"/users/smfa-verify-status/{quote(token, safe='')}")
