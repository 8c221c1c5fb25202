"""Configuration for the interaction telemetry service."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any


class UnknownFeatureError(ValueError):
    """Raised when toggling a feature flag that does not exist."""
    def __init__(self, name: str):
        super().__init__(f"Unknown feature {name}")
        self.name = name


@dataclass
class FeatureFlags:
    """Per-capability switches for the capture pipeline."""
    click: bool = True
    keydown: bool = True
    input: bool = True
    change: bool = True
    focus_blur: bool = True
    selection: bool = True
    copy_cut_paste: bool = True
    scroll: bool = True
    hover: bool = True
    mouse_sampling: bool = True
    resize_orientation: bool = True
    network_status: bool = True
    before_unload: bool = True
    form_submit: bool = True
    drag_drop: bool = True
    rage_click: bool = True
    typing_speed: bool = True
    batching: bool = True
    send_to_collector: bool = False  # Off by default; enable when a collector is running

    def set(self, name: str, value: bool) -> bool:
        """Set a flag by name. Raises UnknownFeatureError for unknown names."""
        if name not in self.names():
            raise UnknownFeatureError(name)
        setattr(self, name, bool(value))
        return getattr(self, name)

    @classmethod
    def names(cls) -> set[str]:
        return {f.name for f in fields(cls)}


@dataclass
class CaptureConfig:
    """Timing and detector tuning."""
    sample_mouse_ms: int = 150
    scroll_debounce_ms: int = 200
    resize_debounce_ms: int = 200
    batch_interval_ms: int = 5000

    rage_click_threshold_ms: int = 600
    rage_click_required: int = 3
    rage_click_radius_px: float = 25.0

    typing_window: int = 40
    typing_report_every: int = 10
    typing_max_subjects: int | None = 1024

    form_field_max_chars: int = 200


@dataclass
class ReportSinkConfig:
    """Where batch reports go."""
    sink_type: str = "console"  # console | file | collector
    sink_config: dict[str, Any] = field(default_factory=dict)


@dataclass
class QueueConfig:
    """Collector queue configuration."""
    key: str = "interaction_event_queue"
    max_items: int = 5000
    flush_sample_size: int = 20

    backend: str = "memory"  # memory | file | redis
    backend_config: dict[str, Any] = field(default_factory=dict)


@dataclass
class CollectorConfig:
    """How the producer reaches the collector."""
    transport: str = "zmq"  # zmq | http | local
    zmq_endpoint: str = "tcp://127.0.0.1:5557"
    http_base_url: str = "http://127.0.0.1:8060"


@dataclass
class ServerConfig:
    """HTTP collector server configuration."""
    host: str = "127.0.0.1"
    port: int = 8060


@dataclass
class Config:
    """Main configuration container."""
    features: FeatureFlags = field(default_factory=FeatureFlags)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    reports: ReportSinkConfig = field(default_factory=ReportSinkConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            features=FeatureFlags(**data.get("features", {})),
            capture=CaptureConfig(**data.get("capture", {})),
            reports=ReportSinkConfig(**data.get("reports", {})),
            queue=QueueConfig(**data.get("queue", {})),
            collector=CollectorConfig(**data.get("collector", {})),
            server=ServerConfig(**data.get("server", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
