"""Base sink interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..batcher import BatchReport


class ReportSink(ABC):
    """
    Abstract base class for report sinks.

    Sinks receive each batch report the batcher produces and deliver it
    somewhere (console, file, collector).
    """

    @abstractmethod
    async def send(self, report: BatchReport) -> None:
        ...

    async def start(self) -> None:
        """Initialize the sink (called on startup)."""
        pass

    async def stop(self) -> None:
        """Clean up the sink (called on shutdown)."""
        pass

    async def health_check(self) -> bool:
        return True
