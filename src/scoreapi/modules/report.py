"""Credit report endpoints."""

from __future__ import annotations

from typing import Any

from scoreapi.http.pipeline import RequestPipeline


class ReportModule:
    def __init__(self, http: RequestPipeline):
        self.http = http

    async def get_latest_report(self) -> dict[str, Any]:
        return await self.http.get("/users/efx-latest-report")

    async def get_latest_report_summary(self) -> dict[str, Any]:
        return await self.http.get("/users/efx-latest-report/summary")
