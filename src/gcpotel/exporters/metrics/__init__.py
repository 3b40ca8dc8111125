"""Cloud Monitoring exporter for the gcpotel SDK."""

from gcpotel.exporters.metrics.descriptors import (
    MetricDescriptorCache,
    MetricDescriptorStrategy,
    MetricIdentity,
)
from gcpotel.exporters.metrics.exporter import (
    CloudMonitoringMetricExporter,
    NoopMetricExporter,
    create_metric_exporter,
)

__all__ = [
    "CloudMonitoringMetricExporter",
    "MetricDescriptorCache",
    "MetricDescriptorStrategy",
    "MetricIdentity",
    "NoopMetricExporter",
    "create_metric_exporter",
]
