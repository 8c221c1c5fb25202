"""ZeroMQ front end for the collector process."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import zmq
import zmq.asyncio

from .protocol import ErrorCode, error_response
from .service import CollectorService


logger = logging.getLogger(__name__)


@dataclass
class ZmqCollectorServer:
    """
    ROUTER socket serving protocol messages.

    Each request is handled in its own task, so a slow store operation
    does not hold up a PING. Framing: [identity, request_id, json] in,
    [identity, request_id, json] out.
    """
    service: CollectorService
    endpoint: str = "tcp://127.0.0.1:5557"
    high_water_mark: int = 10000

    _context: Any = field(default=None, init=False)
    _socket: Any = field(default=None, init=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False)
    _running: bool = field(default=False, init=False)

    async def start(self) -> None:
        self._context = zmq.asyncio.Context()
        self._socket = self._context.socket(zmq.ROUTER)
        self._socket.set_hwm(self.high_water_mark)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._socket.bind(self.endpoint)
        # Resolves wildcard endpoints such as "tcp://127.0.0.1:*"
        self.endpoint = self._socket.getsockopt_string(zmq.LAST_ENDPOINT)
        logger.info(f"Collector listening on {self.endpoint}")

    async def serve_forever(self) -> None:
        if self._socket is None:
            await self.start()

        self._running = True
        while self._running:
            try:
                frames = await self._socket.recv_multipart()
            except asyncio.CancelledError:
                logger.info("Collector server cancelled")
                break
            except Exception as e:
                logger.error(f"Collector receive error: {e}")
                continue

            if len(frames) != 3:
                logger.warning(f"Dropping request with {len(frames)} frames")
                continue

            task = asyncio.create_task(self._respond(*frames))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _respond(self, identity: bytes, request_id: bytes, body: bytes) -> None:
        try:
            message = json.loads(body)
        except ValueError:
            response = error_response(ErrorCode.INVALID_MESSAGE)
        else:
            response = await self.service.handle(message)

        try:
            await self._socket.send_multipart([identity, request_id, json.dumps(response).encode("utf-8")])
        except Exception as e:
            logger.error(f"Collector send error: {e}")

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        if self._context is not None:
            self._context.term()
            self._context = None
        logger.info(f"Collector server stopped. Stats: {self.service.stats}")
