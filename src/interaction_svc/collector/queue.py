"""Bounded, persisted delivery queue."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .errors import StoreError
from .store import KeyValueStore


logger = logging.getLogger(__name__)

DEFAULT_QUEUE_KEY = "interaction_event_queue"
DEFAULT_MAX_ITEMS = 5000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class QueueItem:
    """An enqueued payload and the time it entered the queue."""
    payload: dict[str, Any]
    enqueued_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {"_ts": self.enqueued_at, **self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueItem:
        payload = {k: v for k, v in data.items() if k != "_ts"}
        return cls(payload=payload, enqueued_at=data.get("_ts", 0))


@dataclass(frozen=True, slots=True)
class QueueFlush:
    count: int
    batch: list[QueueItem]


@dataclass
class QueueStore:
    """
    Append-only queue persisted as a single list under one store key.

    Holds at most `max_items`; on overflow the oldest items are dropped.
    Every operation reloads the list from the store, so the queue
    survives restarts when the store does. Load-modify-persist cycles in
    this process run one at a time; several processes sharing the same
    key are last-writer-wins.
    """
    store: KeyValueStore
    key: str = DEFAULT_QUEUE_KEY
    max_items: int = DEFAULT_MAX_ITEMS

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    async def _load(self) -> list[dict[str, Any]]:
        try:
            value = await self.store.get(self.key)
        except Exception as e:
            raise StoreError("get", self.key, e) from e
        return value if isinstance(value, list) else []

    async def _persist(self, items: list[dict[str, Any]]) -> None:
        try:
            await self.store.set(self.key, items)
        except Exception as e:
            raise StoreError("set", self.key, e) from e

    async def enqueue(self, item: QueueItem) -> int:
        """Append an item. Returns the queue length afterwards."""
        async with self._lock:
            items = await self._load()
            items.append(item.to_dict())
            if len(items) > self.max_items:
                dropped = len(items) - self.max_items
                items = items[dropped:]
                logger.debug(f"Queue {self.key!r} over capacity, dropped {dropped} oldest")
            await self._persist(items)
            return len(items)

    async def flush(self) -> QueueFlush:
        """Take every queued item and leave the queue empty."""
        async with self._lock:
            items = await self._load()
            if not items:
                return QueueFlush(count=0, batch=[])
            snapshot = [QueueItem.from_dict(i) for i in items]
            await self._persist([])
            logger.info(f"Flushed {len(snapshot)} items from {self.key!r}")
            return QueueFlush(count=len(snapshot), batch=snapshot)

    async def count(self) -> int:
        return len(await self._load())

    async def clear(self) -> None:
        async with self._lock:
            await self._persist([])
