"""Console sink for development/debugging."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass

from ..batcher import BatchReport
from .base import ReportSink


@dataclass
class ConsoleSink(ReportSink):
    """Writes one line per report to stdout or stderr."""
    stream: str = "stdout"  # stdout | stderr

    # Output format
    format: str = "json"  # json | compact

    # Include the encoded payload when the report carries one
    include_payload: bool = False

    async def send(self, report: BatchReport) -> None:
        out = sys.stdout if self.stream == "stdout" else sys.stderr
        print(f"{report.tag.value} {self._format_report(report)}", file=out)

    def _format_report(self, report: BatchReport) -> str:
        if self.format == "compact":
            return (
                f"{report.captured_at.isoformat()} "
                f"events={report.event_count} "
                f"{report.uncompressed_size}->{report.compressed_size}"
            )
        data = report.to_dict()
        if not self.include_payload:
            data.pop("compressed", None)
        return json.dumps(data)
