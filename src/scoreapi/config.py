"""Client configuration.

Values can be passed directly or read from ``SCOREAPI_*`` environment
variables. Entry points call ``dotenv.load_dotenv()`` before ``from_env`` so
a local ``.env`` file is honoured.
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from scoreapi.auth.storage import StorageAdapter
from scoreapi.http.pipeline import DEFAULT_TIMEOUT_MS
from scoreapi.models.errors import ErrorCode, ScoreAPIError


class ClientConfig(BaseModel):
    """Settings consumed by ScoreAPIClient."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    base_url: str
    timeout: float = Field(default=DEFAULT_TIMEOUT_MS, gt=0)  # milliseconds
    headers: dict[str, str] = Field(default_factory=dict)
    customer_token: str | None = None

    # "memory", "file", or a StorageAdapter instance
    storage: Any = "memory"
    storage_path: str | None = None

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("base_url is required")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: Any) -> Any:
        if isinstance(v, str):
            if v not in ("memory", "file"):
                raise ValueError(f"Unknown storage backend: {v!r}")
            return v
        if not isinstance(v, StorageAdapter):
            raise ValueError("storage must be 'memory', 'file' or a StorageAdapter")
        return v

    @model_validator(mode="wrap")
    @classmethod
    def report_as_score_api_error(cls, data: Any, handler: Any) -> ClientConfig:
        """Raise configuration problems as ScoreAPIError(VALIDATION_ERROR)."""
        try:
            return handler(data)
        except ValidationError as e:
            raise ScoreAPIError(
                f"Invalid client configuration: {e.error_count()} errors",
                ErrorCode.VALIDATION_ERROR,
                details=e.errors(include_url=False),
            ) from e

    @classmethod
    def from_env(cls, prefix: str = "SCOREAPI_", **overrides: Any) -> ClientConfig:
        """Build a config from environment variables.

        Reads ``BASE_URL``, ``TIMEOUT_MS``, ``CUSTOMER_TOKEN``, ``STORAGE`` and
        ``STORAGE_PATH`` under the given prefix. Keyword overrides win.
        """
        values: dict[str, Any] = {"base_url": os.getenv(f"{prefix}BASE_URL", "")}

        timeout = os.getenv(f"{prefix}TIMEOUT_MS")
        if timeout:
            values["timeout"] = timeout
        customer_token = os.getenv(f"{prefix}CUSTOMER_TOKEN")
        if customer_token:
            values["customer_token"] = customer_token
        storage = os.getenv(f"{prefix}STORAGE")
        if storage:
            values["storage"] = storage
        storage_path = os.getenv(f"{prefix}STORAGE_PATH")
        if storage_path:
            values["storage_path"] = storage_path

        values.update(overrides)
        return cls(**values)
