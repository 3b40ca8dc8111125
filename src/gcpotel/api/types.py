"""Public configuration types for the gcpotel SDK.

These types are part of the stable public API and follow semver guarantees.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from gcpotel.exporters.metrics.descriptors import MetricDescriptorStrategy
from gcpotel.exporters.metrics.translator import DEFAULT_PREFIX

DEFAULT_DEADLINE_SECONDS = 10.0


@dataclass
class ServiceConfig:
    """Service identification configuration."""

    name: str
    version: str | None = None


@dataclass
class MetricsConfig:
    """Cloud Monitoring export configuration."""

    enabled: bool = True
    # Metric type prefix, e.g. "workload.googleapis.com" or "custom.googleapis.com"
    prefix: str = DEFAULT_PREFIX
    descriptor_strategy: MetricDescriptorStrategy = MetricDescriptorStrategy.SEND_ONCE
    # Interval of the periodic reader driving the exporter
    export_interval_seconds: float = 60.0


@dataclass
class TraceConfig:
    """Cloud Trace export configuration."""

    enabled: bool = True
    # Span processor: True for BatchSpanProcessor (default), False for SimpleSpanProcessor
    batch: bool = True


@dataclass
class ValidationConfig:
    """Validation mode configuration."""

    mode: str = "permissive"  # "strict" | "permissive"


@dataclass
class Config:
    """Complete SDK configuration.

    ``project_id`` and ``credentials_file`` are optional: when omitted,
    application default credentials and their project are used.
    """

    service: ServiceConfig
    project_id: str | None = None
    # Service account key file (.json)
    # Can be relative path (resolved from config file) or absolute path
    credentials_file: str | None = None
    # Per-call deadline for Cloud Monitoring / Cloud Trace RPCs
    deadline_seconds: float = DEFAULT_DEADLINE_SECONDS
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @property
    def is_strict(self) -> bool:
        """Return True if validation mode is strict."""
        return self.validation.mode == "strict"
