"""
Log a B2B integration in with its API credentials and fetch the latest scores.

You'll need to set SCOREAPI_BASE_URL, SCOREAPI_API_KEY and SCOREAPI_SECRET,
either in the environment or in a .env file. Set SCOREAPI_STORAGE=file and
SCOREAPI_STORAGE_PATH to keep the session between runs.
"""

import asyncio
import json
import logging
import os

from dotenv import load_dotenv

from scoreapi.client import ScoreAPIClient
from scoreapi.config import ClientConfig
from scoreapi.models.auth import DirectLoginRequest
from scoreapi.models.errors import ScoreAPIError


async def main():
    config = ClientConfig.from_env()

    async with ScoreAPIClient(config) as api:
        if not await api.auth.is_authenticated():
            response = await api.auth.direct_login(
                DirectLoginRequest(
                    api_key=os.environ["SCOREAPI_API_KEY"],
                    secret=os.environ["SCOREAPI_SECRET"],
                )
            )
            logging.info(f"Logged in as host: {response.host}")

        try:
            scores = await api.score.get_latest_scores()
        except ScoreAPIError as e:
            logging.error(f"Could not fetch scores: {e.to_dict()}")
            return

        print(json.dumps(scores, indent=2))


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
