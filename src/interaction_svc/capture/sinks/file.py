"""File sink for batch reports."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from ..batcher import BatchReport
from .base import ReportSink


@dataclass
class FileSink(ReportSink):
    """
    Appends reports to a JSONL file, encoded payload included.

    Each report is written as a single JSON line for easy parsing.
    """
    path: str
    encoding: str = "utf-8"

    # Internal state
    _file: object = field(default=None, init=False)

    async def start(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding=self.encoding)

    async def stop(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    async def send(self, report: BatchReport) -> None:
        if not self._file:
            await self.start()

        line = json.dumps({"tag": report.tag.value, **report.to_dict()})
        self._file.write(line + "\n")
        self._file.flush()
