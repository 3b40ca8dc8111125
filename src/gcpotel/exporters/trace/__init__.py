"""Cloud Trace exporter for the gcpotel SDK."""

from gcpotel.exporters.trace.exporter import (
    CloudTraceSpanExporter,
    NoopSpanExporter,
    create_span_exporter,
)

__all__ = ["CloudTraceSpanExporter", "NoopSpanExporter", "create_span_exporter"]
