"""Token lifecycle management over a TokenStore.

Pure state handling: no network calls originate here.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from pydantic import ValidationError

from scoreapi.auth.storage import TokenStore
from scoreapi.models.tokens import REFRESH_BUFFER_MS, TenantType, TokenRecord

logger = logging.getLogger(__name__)

TOKEN_KEY = "scoreapi_tokens"


class TokenManager:
    """Saves, loads and evaluates the single persisted TokenRecord.

    Every write replaces the whole record, so readers never observe a
    partial update.
    """

    def __init__(
        self,
        store: TokenStore,
        clock: Callable[[], float] = time.time,
        buffer_ms: int = REFRESH_BUFFER_MS,
    ):
        """Initialize token manager.

        Args:
            store: Storage facade holding the serialized record
            clock: Returns the current time in seconds since epoch
            buffer_ms: Consider tokens stale this long before expiry
        """
        self.store = store
        self._clock = clock
        self.buffer_ms = buffer_ms

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def save_tokens(
        self,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        tenant_type: TenantType = TenantType.USER,
    ) -> TokenRecord:
        record = TokenRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            tenant_type=tenant_type,
            issued_at=self._now_ms(),
        )
        await self.store.set(TOKEN_KEY, record.serialize())
        logger.debug(f"Saved {record.tenant_type.value} tokens, expires in {expires_in}s")
        return record

    async def get_tokens(self) -> TokenRecord | None:
        """Load the stored record.

        A corrupt payload is logged and treated as if nothing were stored.
        """
        serialized = await self.store.get(TOKEN_KEY)
        if not serialized:
            return None

        try:
            return TokenRecord.model_validate_json(serialized)
        except ValidationError as e:
            logger.error(f"Failed to parse stored tokens: {e.error_count()} errors")
            return None

    async def get_access_token(self) -> str | None:
        tokens = await self.get_tokens()
        return tokens.access_token if tokens and tokens.access_token else None

    async def get_refresh_token(self) -> str | None:
        tokens = await self.get_tokens()
        return tokens.refresh_token if tokens and tokens.refresh_token else None

    async def get_tenant_type(self) -> TenantType | None:
        tokens = await self.get_tokens()
        return tokens.tenant_type if tokens else None

    async def is_expired(self) -> bool:
        """Check whether a refresh is needed before the next request.

        Returns True when no record exists.
        """
        tokens = await self.get_tokens()
        if tokens is None:
            return True
        return not tokens.is_fresh(self._now_ms(), self.buffer_ms)

    async def has_tokens(self) -> bool:
        tokens = await self.get_tokens()
        return tokens is not None and bool(tokens.access_token)

    async def clear_tokens(self) -> None:
        await self.store.remove(TOKEN_KEY)
        logger.debug("Cleared stored tokens")
