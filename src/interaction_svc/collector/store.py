"""Key-value stores backing the delivery queue."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """
    Abstract async key-value store holding JSON-shaped values.

    Implementations raise on failure; callers decide what a failure means.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under `key`, or None."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store `value` under `key`, replacing what was there."""
        ...

    async def start(self) -> None:
        """Open connections (called on startup)."""
        pass

    async def stop(self) -> None:
        """Release connections (called on shutdown)."""
        pass


@dataclass
class MemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are deep-copied through JSON like a real backend."""
    _data: dict[str, str] = field(default_factory=dict, init=False)

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


@dataclass
class JsonFileKeyValueStore(KeyValueStore):
    """
    Store persisted as one JSON document on disk.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write leaves the previous state intact.
    """
    path: str
    encoding: str = "utf-8"

    async def start(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> Any | None:
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding=self.encoding) as f:
            text = f.read()
        if not text.strip():
            return {}
        data = json.loads(text)
        return data if isinstance(data, dict) else {}

    def _write(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding=self.encoding) as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)


@dataclass
class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed store.

    Values are JSON-serialized under `{prefix}{key}`. Survives collector
    restarts and can be shared by several collector processes (last
    writer wins).
    """
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    prefix: str = "interaction:"
    socket_timeout: float = 5.0

    # Pre-built client (tests, shared pools)
    client: Any = None

    async def start(self) -> None:
        if self.client is not None:
            return

        import redis.asyncio as redis

        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            socket_timeout=self.socket_timeout,
            decode_responses=True,
        )
        await self.client.ping()
        logger.info(f"Connected to Redis at {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("Redis connection closed")

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Any | None:
        if self.client is None:
            await self.start()
        raw = await self.client.get(self._key(key))
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        if self.client is None:
            await self.start()
        await self.client.set(self._key(key), json.dumps(value))


def create_store(backend: str, config: dict[str, Any] | None = None) -> KeyValueStore:
    """Build a store from config (`memory` | `file` | `redis`)."""
    config = config or {}
    if backend == "memory":
        return MemoryKeyValueStore()
    elif backend == "file":
        return JsonFileKeyValueStore(**config)
    elif backend == "redis":
        return RedisKeyValueStore(**config)
    raise ValueError(f"Unknown store backend: {backend}")
