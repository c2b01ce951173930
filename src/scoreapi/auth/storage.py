"""Key/value storage backends for the persisted token record.

Backends are selected explicitly by configuration. TokenStore wraps any
backend and applies the failure policy: a broken backend only ever costs a
re-login, so its errors are logged and never reach the caller.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Awaitable, Protocol, runtime_checkable

import aiofiles
import aiofiles.os

from scoreapi.models.errors import ErrorCode, ScoreAPIError

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol for key/value storage backends.

    Methods may be plain functions or coroutines; TokenStore awaits
    whatever comes back when it is awaitable.
    """

    def get(self, key: str) -> str | None | Awaitable[str | None]: ...

    def set(self, key: str, value: str) -> None | Awaitable[None]: ...

    def remove(self, key: str) -> None | Awaitable[None]: ...


class MemoryStorage:
    """Volatile in-process storage. Lost when the process exits."""

    def __init__(self):
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """Persistent key/value storage backed by a single JSON file.

    File I/O runs through aiofiles so the event loop never blocks. Each
    write goes to a temporary file followed by an atomic rename, so a crash
    never leaves a half-written file behind.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path).expanduser()

    async def _load(self) -> dict[str, str]:
        if not await aiofiles.os.path.exists(self.path):
            return {}
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            content = await f.read()
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} is not a JSON object")
        return data

    async def _load_for_write(self) -> dict[str, str]:
        # An unreadable file is replaced by the next write
        try:
            return await self._load()
        except ValueError as e:
            logger.warning(f"Discarding unreadable storage file {self.path}: {e}")
            return {}

    async def _dump(self, data: dict[str, str]) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data))
            await aiofiles.os.replace(tmp_path, self.path)
        except BaseException:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise

    async def get(self, key: str) -> str | None:
        return (await self._load()).get(key)

    async def set(self, key: str, value: str) -> None:
        data = await self._load_for_write()
        data[key] = value
        await self._dump(data)

    async def remove(self, key: str) -> None:
        data = await self._load_for_write()
        if key in data:
            del data[key]
            await self._dump(data)


class TokenStore:
    """Async facade over a storage adapter with swallow-and-log semantics."""

    def __init__(self, adapter: StorageAdapter):
        self.adapter = adapter

    @staticmethod
    async def _resolve(result: Any) -> Any:
        if inspect.isawaitable(result):
            return await result
        return result

    async def get(self, key: str) -> str | None:
        try:
            value = await self._resolve(self.adapter.get(key))
        except Exception as e:
            logger.warning(f"Storage read for {key!r} failed, treating as empty: {e}")
            return None
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str) -> None:
        try:
            await self._resolve(self.adapter.set(key, value))
        except Exception as e:
            logger.warning(f"Storage write for {key!r} failed: {e}")

    async def remove(self, key: str) -> None:
        try:
            await self._resolve(self.adapter.remove(key))
        except Exception as e:
            logger.warning(f"Storage remove for {key!r} failed: {e}")


def create_token_store(
    storage: str | StorageAdapter = "memory",
    path: str | os.PathLike[str] | None = None,
) -> TokenStore:
    """Build a TokenStore for the configured backend.

    Args:
        storage: "memory", "file", or a custom StorageAdapter instance
        path: File location, required when storage is "file"

    Raises:
        ScoreAPIError: If the backend name is unknown or a path is missing
    """
    if isinstance(storage, str):
        if storage == "memory":
            return TokenStore(MemoryStorage())
        if storage == "file":
            if path is None:
                raise ScoreAPIError(
                    "storage_path is required for file storage",
                    ErrorCode.VALIDATION_ERROR,
                )
            return TokenStore(FileStorage(path))
        raise ScoreAPIError(
            f"Unknown storage backend: {storage!r}", ErrorCode.VALIDATION_ERROR
        )

    if isinstance(storage, StorageAdapter):
        return TokenStore(storage)

    raise ScoreAPIError(
        f"Storage adapter {type(storage).__name__} must define get, set and remove",
        ErrorCode.VALIDATION_ERROR,
    )
