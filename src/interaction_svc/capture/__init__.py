"""Capture side - interaction records, detectors, batching and compression."""

from .batcher import BatchReport, EventBatcher
from .compression import Compressor
from .detectors import ClickPoint, RageClickDetector, TypingCadenceTracker, Viewport
from .events import EventRecord, EventTag
from .registry import EventRegistry, EventSource

__all__ = [
    "BatchReport",
    "EventBatcher",
    "Compressor",
    "ClickPoint",
    "RageClickDetector",
    "TypingCadenceTracker",
    "Viewport",
    "EventRecord",
    "EventTag",
    "EventRegistry",
    "EventSource",
]
