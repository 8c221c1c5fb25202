"""
Interaction Telemetry Service - user interaction capture and delivery

A producer/collector pair providing:
- Deduplicated listener registration on a hosted document
- Derived behavioral signals (rage clicks, typing cadence)
- Batched, compressed event reports
- A bounded, persisted delivery queue behind an async request/response bridge
"""

__version__ = "0.1.0"
