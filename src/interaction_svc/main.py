"""FastAPI application - HTTP front end for the collector process.

Serves the same message protocol as the ZeroMQ collector: each POST to
/messages carries one request and gets its response back as the body.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from pydantic import BaseModel

from .collector.protocol import ErrorCode, error_response
from .collector.service import CollectorService
from .config import Config
from .context import create_collector_service


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "INTERACTION_SVC_CONFIG"


class QueueHealth(BaseModel):
    count: int
    max_items: int


class HealthResponse(BaseModel):
    status: str
    queue: QueueHealth
    collector: dict[str, Any]


def load_config() -> Config:
    """Load config from the path in INTERACTION_SVC_CONFIG, or use defaults."""
    path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Config()
    if path.endswith(".json"):
        return Config.from_json(path)
    return Config.from_yaml(path)


def create_app(config: Config | None = None, service: CollectorService | None = None) -> FastAPI:
    """Create the collector app around one CollectorService."""
    config = config or load_config()
    service = service or create_collector_service(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting interaction collector...")
        await service.queue.store.start()
        yield
        logger.info("Shutting down interaction collector...")
        await service.queue.store.stop()
        logger.info(f"Interaction collector stopped. Stats: {service.stats}")

    app = FastAPI(
        title="Interaction Collector",
        description="Bounded, persisted delivery queue for interaction telemetry.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service

    @app.post("/messages")
    async def handle_message(request: Request) -> dict[str, Any]:
        try:
            message = await request.json()
        except ValueError:
            return error_response(ErrorCode.INVALID_MESSAGE)
        return await service.handle(message)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            queue=QueueHealth(count=await service.queue.count(), max_items=service.queue.max_items),
            collector=service.stats,
        )

    return app


def run(config: Config | None = None):
    """Run the collector with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = config or load_config()
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
    )


if __name__ == "__main__":
    run()
