"""Pipeline composition: exporter creation + provider wiring.

This module is responsible for:
- Creating the Cloud Monitoring and Cloud Trace exporters from config
- Wrapping them in the SDK's reader / span processor infrastructure
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

from gcpotel.exporters.metrics import exporter as metrics_exporter
from gcpotel.exporters.trace import exporter as trace_exporter

if TYPE_CHECKING:
    from gcpotel.api.types import Config

logger = logging.getLogger(__name__)


def create_resource(config: Config) -> Resource:
    """Build the SDK resource from service identification."""
    resource_attrs: dict[str, str] = {
        SERVICE_NAME: config.service.name,
    }
    if config.service.version:
        resource_attrs[SERVICE_VERSION] = config.service.version
    return Resource.create(resource_attrs)


def create_meter_provider(config: Config, resource: Resource) -> MeterProvider | None:
    """Create a MeterProvider exporting to Cloud Monitoring.

    Returns:
        The provider, or None when metrics are disabled.

    Raises:
        ConfigurationError: If exporter setup fails in strict mode.
    """
    if not config.metrics.enabled:
        logger.debug("Metrics export disabled")
        return None

    exporter = metrics_exporter.create_metric_exporter(config)
    reader = PeriodicExportingMetricReader(
        exporter,
        export_interval_millis=config.metrics.export_interval_seconds * 1000,
        export_timeout_millis=config.deadline_seconds * 1000,
    )
    return MeterProvider(resource=resource, metric_readers=[reader])


def create_tracer_provider(config: Config, resource: Resource) -> TracerProvider | None:
    """Create a TracerProvider exporting to Cloud Trace.

    Returns:
        The provider, or None when tracing is disabled.

    Raises:
        ConfigurationError: If exporter setup fails in strict mode.
    """
    if not config.trace.enabled:
        logger.debug("Trace export disabled")
        return None

    exporter = trace_exporter.create_span_exporter(config)
    processor: BatchSpanProcessor | SimpleSpanProcessor
    if config.trace.batch:
        processor = BatchSpanProcessor(exporter)
    else:
        processor = SimpleSpanProcessor(exporter)

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(processor)
    return provider
