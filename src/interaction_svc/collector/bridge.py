"""Asynchronous request/response bridge to the collector process."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
import pydantic
import zmq
import zmq.asyncio

from .errors import TransportError, ValidationError
from .protocol import (
    RESPONSE_MODELS,
    ClearResponse,
    CountResponse,
    EnqueueResponse,
    FlushResponse,
    MessageType,
    PingResponse,
    Response,
    make_request,
)


logger = logging.getLogger(__name__)


class Channel(ABC):
    """
    Transport carrying one request and its response.

    A channel raises whatever its transport raises; the bridge turns that
    into a TransportError.
    """

    @abstractmethod
    async def request(self, message: dict[str, Any]) -> dict[str, Any]:
        ...

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


@dataclass
class LocalChannel(Channel):
    """Calls a collector handler in the same process (tests, single-process setups)."""
    handler: Callable[[Any], Awaitable[dict[str, Any]]]

    async def request(self, message: dict[str, Any]) -> dict[str, Any]:
        # Round-trip through JSON so callers see the same shapes as over the wire
        wire = json.loads(json.dumps(message))
        return json.loads(json.dumps(await self.handler(wire)))


@dataclass
class ZmqChannel(Channel):
    """
    ZeroMQ DEALER channel.

    Each request carries a random id; a reader task matches responses to
    waiting futures, so any number of requests can be in flight. A
    response whose caller stopped waiting is dropped.

    Framing: [request_id, json] out, [request_id, json] back.
    """
    endpoint: str = "tcp://127.0.0.1:5557"

    _context: Any = field(default=None, init=False)
    _socket: Any = field(default=None, init=False)
    _reader: asyncio.Task | None = field(default=None, init=False)
    _pending: dict[bytes, asyncio.Future] = field(default_factory=dict, init=False)

    async def start(self) -> None:
        if self._socket is not None:
            return
        self._context = zmq.asyncio.Context()
        self._socket = self._context.socket(zmq.DEALER)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._socket.connect(self.endpoint)
        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"ZMQ channel connected to {self.endpoint}")

    async def stop(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None

        self._fail_pending(TransportError(f"Channel to {self.endpoint} closed"))

        if self._socket is not None:
            self._socket.close()
            self._socket = None
        if self._context is not None:
            self._context.term()
            self._context = None
        logger.info("ZMQ channel stopped")

    async def request(self, message: dict[str, Any]) -> dict[str, Any]:
        if self._socket is None:
            await self.start()

        request_id = uuid.uuid4().hex.encode()
        body = json.dumps(message).encode("utf-8")
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._socket.send_multipart([request_id, body])
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self) -> None:
        while True:
            try:
                frames = await self._socket.recv_multipart()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"ZMQ receive error: {e}")
                self._fail_pending(TransportError(f"Receive failed: {e}", e))
                break

            if len(frames) != 2:
                logger.warning(f"Dropping response with {len(frames)} frames")
                continue

            request_id, body = frames
            future = self._pending.get(request_id)
            if future is None or future.done():
                logger.debug("Dropping response for abandoned request")
                continue

            try:
                future.set_result(json.loads(body))
            except ValueError as e:
                future.set_exception(TransportError(f"Malformed response: {e}", e))

    def _fail_pending(self, error: TransportError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()


@dataclass
class HttpChannel(Channel):
    """HTTP channel posting each message to the collector's /messages endpoint."""
    base_url: str = "http://127.0.0.1:8060"
    timeout_seconds: float | None = None

    # Pre-built client (tests can pass one wired to an ASGI app)
    client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self.client is None:
            self.client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_seconds)

    async def stop(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def request(self, message: dict[str, Any]) -> dict[str, Any]:
        if self.client is None:
            await self.start()
        response = await self.client.post("/messages", json=message)
        response.raise_for_status()
        return response.json()


@dataclass
class DeliveryBridge:
    """
    Sends protocol messages to the collector.

    Every call is independent: no batching, no retry and no timeout of
    its own. Transport failures surface as TransportError; the typed
    helpers additionally raise ValidationError for `ok: false` replies.
    """
    channel: Channel

    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "sent": 0,
            "failed": 0,
        }

    async def start(self) -> None:
        await self.channel.start()

    async def stop(self) -> None:
        await self.channel.stop()

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        """Send one message and wait for the collector's response."""
        try:
            response = await self.channel.request(message)
        except TransportError:
            self._stats["failed"] += 1
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats["failed"] += 1
            raise TransportError(f"Failed to send {message.get('type')!r}: {e}", e) from e

        self._stats["sent"] += 1
        return response

    def send_nowait(self, message: dict[str, Any]) -> asyncio.Task:
        """
        Fire-and-forget send.

        The returned task can be awaited or ignored; a failure is logged
        either way.
        """
        task = asyncio.get_running_loop().create_task(self.send(message))
        task.add_done_callback(_log_failure)
        return task

    async def _call(self, message_type: MessageType, **fields: Any) -> Response:
        response = await self.send(make_request(message_type, **fields))
        if not isinstance(response, dict):
            raise TransportError(f"Unexpected response for {message_type.value}: {response!r}")
        if response.get("ok") is False:
            raise ValidationError(str(response.get("error", "unknown")), response)
        try:
            return RESPONSE_MODELS[message_type].model_validate(response)
        except pydantic.ValidationError as e:
            raise ValidationError("malformed_response", response) from e

    async def ping(self) -> PingResponse:
        return await self._call(MessageType.PING)

    async def enqueue(self, payload: dict[str, Any]) -> EnqueueResponse:
        return await self._call(MessageType.ENQUEUE, payload=payload)

    async def get_pending_count(self) -> CountResponse:
        return await self._call(MessageType.GET_PENDING_COUNT)

    async def flush_queue(self) -> FlushResponse:
        return await self._call(MessageType.FLUSH_QUEUE)

    async def clear_queue(self) -> ClearResponse:
        return await self._call(MessageType.CLEAR_QUEUE)

    @property
    def stats(self) -> dict:
        return dict(self._stats)


def _log_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Delivery to collector failed: {error}")


def create_channel(transport: str, **config: Any) -> Channel:
    """Build a channel from config (`zmq` | `http`)."""
    if transport == "zmq":
        return ZmqChannel(**config)
    elif transport == "http":
        return HttpChannel(**config)
    raise ValueError(f"Unknown transport: {transport}")
