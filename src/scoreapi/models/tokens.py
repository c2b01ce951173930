"""Token record and refresh response models.

The TokenRecord is the only persisted entity in the SDK. It is stored as one
JSON object using the backend's camelCase field names.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Refresh this long before the literal expiry instant
REFRESH_BUFFER_MS = 5 * 60 * 1000


class TenantType(str, Enum):
    """Which principal a token record belongs to.

    Determines the login and refresh endpoint family.
    """

    USER = "user"
    CUSTOMER = "customer"
    DIRECT = "direct"


class TokenRecord(BaseModel):
    """Persisted access/refresh token pair with issue time and tenant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    expires_in: int = Field(alias="expiresIn")  # seconds
    tenant_type: TenantType = Field(default=TenantType.USER, alias="tokenType")
    issued_at: int = Field(alias="timestamp")  # ms since epoch

    @property
    def expires_at_ms(self) -> int:
        return self.issued_at + self.expires_in * 1000

    def is_fresh(self, now_ms: int, buffer_ms: int = REFRESH_BUFFER_MS) -> bool:
        """Check whether the access token can still be sent.

        Args:
            now_ms: Current time in milliseconds since epoch
            buffer_ms: Treat the token as stale this long before expiry
        """
        return now_ms < self.expires_at_ms - buffer_ms

    def serialize(self) -> str:
        return self.model_dump_json(by_alias=True)


class TokenRefreshResponse(BaseModel):
    """Body returned by every tenant's refresh-token endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str
    expires_in: int
