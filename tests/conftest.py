"""Shared test fixtures for the interaction telemetry tests."""

import sys
from pathlib import Path

import pytest

# Allow running from a source checkout without installing
_REPO_ROOT = Path(__file__).parent.parent
if (_REPO_ROOT / "src" / "interaction_svc").exists():
    sys.path.insert(0, str(_REPO_ROOT / "src"))

from interaction_svc.capture.batcher import BatchReport
from interaction_svc.capture.events import EventRecord, EventTag
from interaction_svc.capture.sinks.base import ReportSink
from interaction_svc.collector.queue import QueueStore
from interaction_svc.collector.service import CollectorService
from interaction_svc.collector.store import KeyValueStore, MemoryKeyValueStore
from interaction_svc.config import CaptureConfig, Config, FeatureFlags


class ListSink(ReportSink):
    """Sink that keeps every report it receives."""

    def __init__(self):
        self.reports: list[BatchReport] = []
        self.started = 0
        self.stopped = 0

    async def send(self, report: BatchReport) -> None:
        self.reports.append(report)

    async def start(self) -> None:
        self.started += 1

    async def stop(self) -> None:
        self.stopped += 1


class ListStore(KeyValueStore):
    """Store keeping plain list copies (no JSON round-trip, for large queues)."""

    def __init__(self):
        self.data = {}
        self.gets = 0
        self.sets = 0

    async def get(self, key):
        self.gets += 1
        value = self.data.get(key)
        return list(value) if value is not None else None

    async def set(self, key, value):
        self.sets += 1
        self.data[key] = list(value)


class FailingStore(KeyValueStore):
    """Store whose every operation fails."""

    async def get(self, key):
        raise OSError("disk unavailable")

    async def set(self, key, value):
        raise OSError("disk unavailable")


def make_record(n: int = 0, tag: EventTag = EventTag.CLICK) -> EventRecord:
    return EventRecord.create(tag, {"n": n}, action_type="click")


@pytest.fixture
def list_sink() -> ListSink:
    return ListSink()


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def queue(memory_store) -> QueueStore:
    return QueueStore(store=memory_store)


@pytest.fixture
def collector(queue) -> CollectorService:
    return CollectorService(queue=queue)


@pytest.fixture
def fast_config() -> Config:
    """Config with short timers and mouse sampling off."""
    return Config(
        features=FeatureFlags(mouse_sampling=False),
        capture=CaptureConfig(
            batch_interval_ms=60_000,
            scroll_debounce_ms=20,
            resize_debounce_ms=20,
        ),
    )
