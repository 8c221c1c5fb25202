#!/usr/bin/env python3
"""
CLI tool for running and talking to the interaction collector.

Usage:
    python -m interaction_svc.cli serve --transport zmq
    python -m interaction_svc.cli serve --transport http --config config.yaml
    python -m interaction_svc.cli ping
    python -m interaction_svc.cli count
    python -m interaction_svc.cli enqueue '{"tag": "[ClickLogger]"}'
    python -m interaction_svc.cli flush
    python -m interaction_svc.cli clear
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from colorama import Fore, Style, init as colorama_init

from .collector.bridge import DeliveryBridge, HttpChannel, ZmqChannel
from .collector.errors import BridgeError
from .collector.server import ZmqCollectorServer
from .config import Config
from .context import create_collector_service


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def print_json(data: Any, indent: int = 2) -> None:
    print(json.dumps(data, indent=indent, default=str))


def load_config(args) -> Config:
    if not args.config:
        return Config()
    if args.config.endswith(".json"):
        return Config.from_json(args.config)
    return Config.from_yaml(args.config)


def create_client_bridge(args, config: Config) -> DeliveryBridge:
    transport = args.transport or config.collector.transport
    if transport == "http":
        return DeliveryBridge(channel=HttpChannel(base_url=args.base_url or config.collector.http_base_url))
    return DeliveryBridge(channel=ZmqChannel(endpoint=args.endpoint or config.collector.zmq_endpoint))


async def cmd_serve_zmq(args, config: Config) -> int:
    """Run the ZeroMQ collector until interrupted."""
    service = create_collector_service(config)
    await service.queue.store.start()
    server = ZmqCollectorServer(service=service, endpoint=args.endpoint or config.collector.zmq_endpoint)
    await server.start()
    print(colorize("Collector listening on", Style.BRIGHT), server.endpoint)
    try:
        await server.serve_forever()
    finally:
        await server.stop()
        await service.queue.store.stop()
    return 0


async def cmd_client(args, config: Config) -> int:
    """Send one request to a running collector and print the response."""
    bridge = create_client_bridge(args, config)
    await bridge.start()
    try:
        if args.command == "ping":
            response = await bridge.ping()
        elif args.command == "count":
            response = await bridge.get_pending_count()
        elif args.command == "enqueue":
            response = await bridge.enqueue(json.loads(args.payload))
        elif args.command == "flush":
            response = await bridge.flush_queue()
        else:
            response = await bridge.clear_queue()
    except BridgeError as e:
        print(colorize(f"Error: {e}", Fore.RED), file=sys.stderr)
        return 1
    finally:
        await bridge.stop()

    print(colorize(f"{args.command.upper()}:", Fore.GREEN))
    print_json(response.model_dump())
    return 0


def main():
    colorama_init()

    parser = argparse.ArgumentParser(
        description="CLI tool for the interaction collector",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to YAML or JSON config")
    parser.add_argument("--transport", choices=["zmq", "http"], help="Collector transport")
    parser.add_argument("--endpoint", help="ZeroMQ endpoint (e.g., tcp://127.0.0.1:5557)")
    parser.add_argument("--base-url", help="HTTP collector base URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("serve", help="Run a collector")
    subparsers.add_parser("ping", help="Check that the collector answers")
    subparsers.add_parser("count", help="Number of queued items")
    enqueue_parser = subparsers.add_parser("enqueue", help="Queue one JSON payload")
    enqueue_parser.add_argument("payload", help="JSON object")
    subparsers.add_parser("flush", help="Take every queued item")
    subparsers.add_parser("clear", help="Drop every queued item")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args)

    if args.command == "serve":
        if (args.transport or config.collector.transport) == "http":
            from .main import run
            run(config)
            return 0
        try:
            return asyncio.run(cmd_serve_zmq(args, config))
        except KeyboardInterrupt:
            return 0

    return asyncio.run(cmd_client(args, config))


if __name__ == "__main__":
    sys.exit(main() or 0)
