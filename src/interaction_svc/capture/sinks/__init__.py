"""Report sinks - destinations for batch reports."""

from .base import ReportSink
from .collector import CollectorSink
from .console import ConsoleSink
from .file import FileSink

__all__ = [
    "ReportSink",
    "CollectorSink",
    "ConsoleSink",
    "FileSink",
]
