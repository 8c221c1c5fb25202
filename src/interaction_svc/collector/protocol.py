"""Request/response message protocol between producer and collector."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class MessageType(str, Enum):
    PING = "PING"
    ENQUEUE = "ENQUEUE"
    GET_PENDING_COUNT = "GET_PENDING_COUNT"
    FLUSH_QUEUE = "FLUSH_QUEUE"
    CLEAR_QUEUE = "CLEAR_QUEUE"


class ErrorCode(str, Enum):
    INVALID_MESSAGE = "invalid_message"
    UNKNOWN_TYPE = "unknown_type"


FLUSH_SAMPLE_SIZE = 20


def make_request(message_type: MessageType, **fields: Any) -> dict[str, Any]:
    return {"type": message_type.value, **fields}


def error_response(error: str | ErrorCode) -> dict[str, Any]:
    if isinstance(error, ErrorCode):
        error = error.value
    return {"ok": False, "error": error}


# Response models
class Response(BaseModel):
    ok: bool = True


class PingResponse(Response):
    pong: bool
    ts: int


class EnqueueResponse(Response):
    queued: bool


class CountResponse(Response):
    count: int


class FlushResponse(Response):
    flushed: int
    sample: list[dict[str, Any]] = []


class ClearResponse(Response):
    cleared: bool


class ErrorResponse(Response):
    ok: bool = False
    error: str


RESPONSE_MODELS: dict[MessageType, type[Response]] = {
    MessageType.PING: PingResponse,
    MessageType.ENQUEUE: EnqueueResponse,
    MessageType.GET_PENDING_COUNT: CountResponse,
    MessageType.FLUSH_QUEUE: FlushResponse,
    MessageType.CLEAR_QUEUE: ClearResponse,
}
