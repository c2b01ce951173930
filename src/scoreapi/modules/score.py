"""Credit score endpoints.

Scores are computed server-side; these calls only fetch them.
"""

from __future__ import annotations

from typing import Any

from scoreapi.http.pipeline import RequestPipeline


class ScoreModule:
    def __init__(self, http: RequestPipeline):
        self.http = http

    async def get_latest_scores(self) -> dict[str, Any]:
        return await self.http.get("/users/efx-latest-scores")

    async def get_score_history(self) -> dict[str, Any]:
        return await self.http.get("/users/efx-score-history")

    async def get_score_projection(
        self, score_increase: int, time_horizon: int
    ) -> dict[str, Any]:
        """Ask the server for a what-if projection.

        Args:
            score_increase: Target score gain
            time_horizon: Months to reach it
        """
        return await self.http.get(
            "/users/efx-score-up",
            params={"scoreInc": score_increase, "timeHorizon": time_horizon},
        )

    async def get_equifax_config(self) -> dict[str, Any]:
        return await self.http.get("/users/efx-config")
