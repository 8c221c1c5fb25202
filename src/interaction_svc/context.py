"""Per-process context shared by every pipeline component."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .capture.batcher import EventBatcher
from .capture.detectors import RageClickDetector, TypingCadenceTracker
from .capture.registry import EventRegistry
from .capture.sinks import CollectorSink, ConsoleSink, FileSink, ReportSink
from .collector.bridge import DeliveryBridge, LocalChannel, create_channel
from .collector.queue import QueueStore
from .collector.service import CollectorService
from .collector.store import create_store
from .config import Config


logger = logging.getLogger(__name__)


def create_bridge(config: Config, service: CollectorService | None = None) -> DeliveryBridge:
    """Create the delivery bridge for the configured transport."""
    transport = config.collector.transport
    if transport == "local":
        if service is None:
            service = create_collector_service(config)
        return DeliveryBridge(channel=LocalChannel(handler=service.handle))
    if transport == "zmq":
        return DeliveryBridge(channel=create_channel("zmq", endpoint=config.collector.zmq_endpoint))
    return DeliveryBridge(channel=create_channel(transport, base_url=config.collector.http_base_url))


def create_collector_service(config: Config) -> CollectorService:
    """Create the queue store and collector service from config."""
    store = create_store(config.queue.backend, config.queue.backend_config)
    queue = QueueStore(store=store, key=config.queue.key, max_items=config.queue.max_items)
    return CollectorService(queue=queue, sample_size=config.queue.flush_sample_size)


def create_report_sink(config: Config, bridge: DeliveryBridge | None = None) -> ReportSink:
    """Create the batch report sink based on config."""
    sink_type = config.reports.sink_type
    sink_config = config.reports.sink_config

    if sink_type == "console":
        return ConsoleSink(**sink_config)
    elif sink_type == "file":
        return FileSink(**sink_config)
    elif sink_type == "collector":
        if bridge is None:
            raise ValueError("collector report sink needs a delivery bridge")
        return CollectorSink(bridge=bridge)

    logger.warning(f"Unknown report sink {sink_type!r}, using console")
    return ConsoleSink()


@dataclass
class PipelineContext:
    """
    Everything one producer process shares: config, listener registry,
    batcher, detectors and the optional bridge to the collector.

    Build it once per process with `create` and pass it to the pipeline.
    """
    config: Config
    registry: EventRegistry
    batcher: EventBatcher
    rage_clicks: RageClickDetector
    typing: TypingCadenceTracker
    sink: ReportSink | None = None
    bridge: DeliveryBridge | None = None

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        bridge: DeliveryBridge | None = None,
        sink: ReportSink | None = None,
    ) -> PipelineContext:
        config = config or Config()
        capture = config.capture

        if bridge is None and (
            config.features.send_to_collector or config.reports.sink_type == "collector"
        ):
            bridge = create_bridge(config)
        if sink is None:
            sink = create_report_sink(config, bridge)

        batcher = EventBatcher(
            flush_interval_seconds=capture.batch_interval_ms / 1000,
            enabled=config.features.batching,
            sink=sink.send,
        )
        return cls(
            config=config,
            registry=EventRegistry(),
            batcher=batcher,
            rage_clicks=RageClickDetector(
                threshold_ms=capture.rage_click_threshold_ms,
                required_count=capture.rage_click_required,
                radius_px=capture.rage_click_radius_px,
            ),
            typing=TypingCadenceTracker(
                window=capture.typing_window,
                report_every=capture.typing_report_every,
                max_subjects=capture.typing_max_subjects,
            ),
            sink=sink,
            bridge=bridge,
        )
