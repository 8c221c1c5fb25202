"""Collector side - bounded persisted queue behind a request/response bridge."""

from .bridge import Channel, DeliveryBridge, HttpChannel, LocalChannel, ZmqChannel
from .errors import StoreError, TransportError, ValidationError
from .queue import QueueItem, QueueStore
from .service import CollectorService
from .store import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore

__all__ = [
    "Channel",
    "DeliveryBridge",
    "HttpChannel",
    "LocalChannel",
    "ZmqChannel",
    "StoreError",
    "TransportError",
    "ValidationError",
    "QueueItem",
    "QueueStore",
    "CollectorService",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "RedisKeyValueStore",
]
