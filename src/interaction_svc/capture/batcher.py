"""Batching of interaction records with compressed batch reports."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from .compression import Compressor
from .events import EventRecord, EventTag, safe_json_dumps
from .timers import RepeatingTimer, TimerState


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchReport:
    """Summary of one flushed batch."""
    captured_at: datetime
    event_count: int
    uncompressed_size: int
    compressed_size: int
    compressed: str | None = None
    tag: EventTag = EventTag.BATCH

    def to_dict(self) -> dict[str, Any]:
        out = {
            "time": self.captured_at.isoformat(),
            "events": self.event_count,
            "originalSize": self.uncompressed_size,
            "compressedBase64Length": self.compressed_size,
        }
        if self.compressed is not None:
            out["compressed"] = self.compressed
        return out


ReportSinkFn = Callable[[BatchReport], Awaitable[None]]


@dataclass
class EventBatcher:
    """
    Accumulates records in memory and flushes them as compressed batches.

    A flush takes the whole pending list in one step before doing any
    work, so a record enqueued afterwards lands in the next batch and is
    never counted twice. Flushes happen on the repeating timer, on
    demand, or on teardown.
    """
    flush_interval_seconds: float = 5.0

    # When False, records skip the buffer and are emitted right away
    enabled: bool = True

    # Receives every report produced by flush()
    sink: ReportSinkFn | None = None

    # Called for records that bypass the buffer
    on_immediate: Callable[[EventRecord], None] | None = None

    compressor: Compressor = field(default_factory=Compressor)

    # Internal state
    _pending: list[EventRecord] = field(default_factory=list, init=False)
    _timer: RepeatingTimer | None = field(default=None, init=False)
    _last_flush: float = field(default_factory=time.time, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "batches_flushed": 0,
            "events_flushed": 0,
            "immediate": 0,
            "flush_errors": 0,
        }
        self._timer = RepeatingTimer(
            interval_seconds=self.flush_interval_seconds,
            callback=self._on_tick,
            name="batch-flush",
        )

    def enqueue(self, record: EventRecord) -> None:
        """Add a record to the pending batch."""
        if not self.enabled:
            self._stats["immediate"] += 1
            logger.info(f"{record.tag.value} {safe_json_dumps(record.to_dict())}")
            if self.on_immediate is not None:
                self.on_immediate(record)
            return
        self._pending.append(record)

    def take_report(self, include_payload: bool = False) -> BatchReport | None:
        """
        Take everything pending and build a compressed report.

        Returns None (and changes nothing) when there is nothing pending.
        """
        if not self._pending:
            return None

        batch, self._pending = tuple(self._pending), []
        captured_at = datetime.now(timezone.utc)
        text = safe_json_dumps({
            "time": captured_at.isoformat(),
            "batch": [r.to_dict() for r in batch],
        })
        compressed = self.compressor.compress(text)

        self._last_flush = time.time()
        self._stats["batches_flushed"] += 1
        self._stats["events_flushed"] += len(batch)

        return BatchReport(
            captured_at=captured_at,
            event_count=len(batch),
            uncompressed_size=len(text),
            compressed_size=len(compressed),
            compressed=compressed if include_payload else None,
        )

    async def flush(self, include_payload: bool = False) -> BatchReport | None:
        """Flush pending records and hand the report to the sink."""
        report = self.take_report(include_payload)
        if report is None:
            return None

        logger.info(f"{report.tag.value} {report.event_count} events, "
                    f"{report.uncompressed_size} -> {report.compressed_size} chars")

        if self.sink is not None:
            try:
                await self.sink(report)
            except Exception as e:
                logger.error(f"Failed to deliver batch report: {e}")
                self._stats["flush_errors"] += 1
        return report

    def flush_on_teardown(self) -> BatchReport | None:
        """
        Synchronous last-chance flush for imminent shutdown.

        The report is only logged; nothing is awaited.
        """
        report = self.take_report()
        if report is None:
            return None
        report = BatchReport(
            captured_at=report.captured_at,
            event_count=report.event_count,
            uncompressed_size=report.uncompressed_size,
            compressed_size=report.compressed_size,
            tag=EventTag.BATCH_TEARDOWN,
        )
        logger.info(f"{report.tag.value} {safe_json_dumps(report.to_dict())}")
        return report

    async def _on_tick(self) -> None:
        if self._pending:
            await self.flush(include_payload=True)

    def start(self) -> bool:
        """Start the flush timer. Needs a running event loop."""
        started = self._timer.start()
        if started:
            logger.info(f"Batcher timer started (interval={self.flush_interval_seconds}s)")
        return started

    async def stop(self) -> None:
        """Stop the timer and flush what is left."""
        self._timer.stop()
        await self.flush()
        logger.info(f"Batcher stopped. Stats: {self._stats}")

    @property
    def running(self) -> bool:
        return self._timer.state == TimerState.RUNNING

    @property
    def pending(self) -> tuple[EventRecord, ...]:
        """Snapshot of the records waiting for the next flush."""
        return tuple(self._pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def stats(self) -> dict:
        return {
            **self._stats,
            "pending": self.pending_count,
            "seconds_since_flush": time.time() - self._last_flush,
        }
