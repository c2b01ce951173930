"""Credit monitoring alerts."""

from __future__ import annotations

from typing import Any

from scoreapi.http.pipeline import RequestPipeline


class AlertModule:
    def __init__(self, http: RequestPipeline):
        self.http = http

    async def get_alerts(self) -> dict[str, Any]:
        """Fetch all alerts with unread and total counts.

        A non-list body is treated as no alerts.
        """
        alerts = await self.http.get("/users/efx-alerts")
        if not isinstance(alerts, list):
            alerts = []

        return {
            "alerts": alerts,
            "unreadCount": sum(
                1 for alert in alerts if isinstance(alert, dict) and not alert.get("read")
            ),
            "totalCount": len(alerts),
        }
