"""Collector request handling over the delivery queue."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .protocol import FLUSH_SAMPLE_SIZE, ErrorCode, MessageType, error_response
from .queue import QueueItem, QueueStore, now_ms


logger = logging.getLogger(__name__)


@dataclass
class CollectorService:
    """
    Answers protocol messages against a QueueStore.

    `handle` never raises: malformed and unknown requests get an
    `ok: false` response, and so does any failure while serving one.
    """
    queue: QueueStore
    sample_size: int = FLUSH_SAMPLE_SIZE

    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "handled": 0,
            "rejected": 0,
            "errors": 0,
        }

    async def handle(self, message: Any) -> dict[str, Any]:
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            self._stats["rejected"] += 1
            return error_response(ErrorCode.INVALID_MESSAGE)

        try:
            message_type = MessageType(message["type"])
        except ValueError:
            self._stats["rejected"] += 1
            return error_response(ErrorCode.UNKNOWN_TYPE)

        try:
            response = await self._dispatch(message_type, message)
        except Exception as e:
            logger.error(f"Collector failed handling {message_type.value}: {e}")
            self._stats["errors"] += 1
            return error_response(str(e))

        self._stats["handled"] += 1
        return response

    async def _dispatch(self, message_type: MessageType, message: dict[str, Any]) -> dict[str, Any]:
        if message_type == MessageType.PING:
            return {"ok": True, "pong": True, "ts": now_ms()}

        if message_type == MessageType.ENQUEUE:
            payload = message.get("payload")
            item = QueueItem(payload=dict(payload) if isinstance(payload, dict) else {})
            await self.queue.enqueue(item)
            return {"ok": True, "queued": True}

        if message_type == MessageType.GET_PENDING_COUNT:
            return {"ok": True, "count": await self.queue.count()}

        if message_type == MessageType.FLUSH_QUEUE:
            result = await self.queue.flush()
            sample = [item.to_dict() for item in result.batch[: self.sample_size]]
            return {"ok": True, "flushed": result.count, "sample": sample}

        if message_type == MessageType.CLEAR_QUEUE:
            await self.queue.clear()
            return {"ok": True, "cleared": True}

        return error_response(ErrorCode.UNKNOWN_TYPE)

    @property
    def stats(self) -> dict:
        return dict(self._stats)
