"""Sink forwarding batch reports to the collector queue."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...collector.bridge import DeliveryBridge
from ..batcher import BatchReport
from ..events import EventRecord
from .base import ReportSink


logger = logging.getLogger(__name__)


@dataclass
class CollectorSink(ReportSink):
    """
    Enqueues each batch report on the collector as a batch summary record.

    Delivery errors propagate to the batcher, which logs and counts them.
    """
    bridge: DeliveryBridge

    async def start(self) -> None:
        await self.bridge.start()

    async def stop(self) -> None:
        await self.bridge.stop()

    async def send(self, report: BatchReport) -> None:
        record = EventRecord.create(
            report.tag,
            report.to_dict(),
            action_type="batch",
            timestamp=report.captured_at,
        )
        await self.bridge.enqueue(record.to_dict())

    async def health_check(self) -> bool:
        try:
            await self.bridge.ping()
        except Exception as e:
            logger.warning(f"Collector health check failed: {e}")
            return False
        return True
