"""Translate OpenTelemetry metrics into Cloud Monitoring time series.

One OpenTelemetry ``Metric`` becomes one metric descriptor plus one
``TimeSeries`` per data point. Cloud Monitoring only accepts a single point
per series in each write, so points are never merged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from google.api.distribution_pb2 import Distribution
from google.api.label_pb2 import LabelDescriptor
from google.api.metric_pb2 import Metric as GoogleMetric
from google.api.metric_pb2 import MetricDescriptor
from google.cloud import monitoring_v3
from google.protobuf.any_pb2 import Any as AnyProto
from google.protobuf.timestamp_pb2 import Timestamp
from opentelemetry.sdk.metrics.export import (
    AggregationTemporality,
    Gauge,
    Histogram,
    HistogramDataPoint,
    Sum,
)
from opentelemetry.trace import (
    INVALID_SPAN_ID,
    INVALID_TRACE_ID,
    format_span_id,
    format_trace_id,
)

from gcpotel._internal.timestamps import timestamp_from_nanos
from gcpotel.exceptions import TranslationError
from gcpotel.exporters.metrics.descriptors import MetricIdentity
from gcpotel.resource_mapping import (
    GcpResource,
    attribute_to_label_value,
    to_monitored_resource,
)

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics.export import Metric, NumberDataPoint
    from opentelemetry.sdk.util.instrumentation import InstrumentationScope

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "workload.googleapis.com"

# Reserved label keys carrying the instrumentation scope on every point
LABEL_INSTRUMENTATION_SOURCE = "instrumentation_source"
LABEL_INSTRUMENTATION_VERSION = "instrumentation_version"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_GAUGE = MetricDescriptor.MetricKind.GAUGE
_CUMULATIVE = MetricDescriptor.MetricKind.CUMULATIVE


@dataclass(frozen=True)
class TranslatedMetric:
    """Everything needed to send one OpenTelemetry metric to Cloud Monitoring."""

    identity: MetricIdentity
    descriptor: MetricDescriptor
    time_series: list[monitoring_v3.TimeSeries] = field(default_factory=list)


class MetricTranslator:
    """Builds Cloud Monitoring descriptors and time series.

    Args:
        project_id: Google Cloud project receiving the metrics. Used to
            build span names for exemplar attachments.
        prefix: Metric type prefix, e.g. ``workload.googleapis.com``.
    """

    def __init__(self, project_id: str, prefix: str = DEFAULT_PREFIX) -> None:
        self._project_id = project_id
        self._prefix = prefix.rstrip("/")

    @property
    def prefix(self) -> str:
        return self._prefix

    def metric_type(self, name: str) -> str:
        return f"{self._prefix}/{name}"

    def translate(
        self,
        metric: Metric,
        scope: InstrumentationScope | None,
        resource: GcpResource,
    ) -> TranslatedMetric | None:
        """Translate one metric.

        Args:
            metric: Metric collected by the SDK.
            scope: Instrumentation scope that produced the metric.
            resource: Already-mapped monitored resource.

        Returns:
            The translated metric, or None when it has no data points.

        Raises:
            TranslationError: If the metric has no Cloud Monitoring
                representation (unsupported data type or temporality, a
                malformed histogram, or an integer outside the int64 range).
        """
        kind = _metric_kind(metric)
        data_points = list(metric.data.data_points)
        if not data_points:
            return None

        value_type = _value_type(metric, data_points[0])
        descriptor = MetricDescriptor(
            type=self.metric_type(metric.name),
            display_name=metric.name,
            description=metric.description or "",
            unit=metric.unit or "",
            metric_kind=kind,
            value_type=value_type,
            labels=[
                LabelDescriptor(key=key, value_type=LabelDescriptor.ValueType.STRING)
                for key in (data_points[0].attributes or {})
            ],
        )

        monitored_resource = to_monitored_resource(resource)
        time_series = [
            monitoring_v3.TimeSeries(
                metric=GoogleMetric(
                    type=descriptor.type,
                    labels=_point_labels(point.attributes, scope),
                ),
                resource=monitored_resource,
                metric_kind=kind,
                points=[self._to_point(metric.name, kind, value_type, point)],
            )
            for point in data_points
        ]
        return TranslatedMetric(
            identity=MetricIdentity(
                name=metric.name,
                kind=MetricDescriptor.MetricKind.Name(kind),
                unit=metric.unit or "",
            ),
            descriptor=descriptor,
            time_series=time_series,
        )

    def _to_point(
        self,
        name: str,
        kind: int,
        value_type: int,
        point: NumberDataPoint | HistogramDataPoint,
    ) -> monitoring_v3.Point:
        interval: dict[str, Timestamp] = {
            "end_time": timestamp_from_nanos(point.time_unix_nano),
        }
        # Gauge intervals are a single instant
        if kind == _CUMULATIVE:
            interval["start_time"] = timestamp_from_nanos(point.start_time_unix_nano)

        if isinstance(point, HistogramDataPoint):
            value = monitoring_v3.TypedValue(
                distribution_value=self._to_distribution(name, point)
            )
        elif value_type == MetricDescriptor.ValueType.INT64:
            value = monitoring_v3.TypedValue(
                int64_value=_int64(name, "value", int(point.value))
            )
        else:
            value = monitoring_v3.TypedValue(double_value=float(point.value))

        return monitoring_v3.Point(
            interval=monitoring_v3.TimeInterval(**interval),
            value=value,
        )

    def _to_distribution(self, name: str, point: HistogramDataPoint) -> Distribution:
        bounds = list(point.explicit_bounds)
        bucket_counts = list(point.bucket_counts)
        if len(bucket_counts) != len(bounds) + 1:
            raise TranslationError(
                f"Histogram '{name}' has {len(bucket_counts)} bucket counts "
                f"for {len(bounds)} boundaries"
            )

        # Cloud Monitoring allows at most one exemplar per bucket
        exemplars = list(getattr(point, "exemplars", None) or ())[: len(bucket_counts)]

        _int64(name, "count", point.count)
        for count in bucket_counts:
            _int64(name, "bucket count", count)

        return Distribution(
            count=point.count,
            mean=point.sum / point.count if point.count else 0.0,
            bucket_options=Distribution.BucketOptions(
                explicit_buckets=Distribution.BucketOptions.Explicit(bounds=bounds)
            ),
            bucket_counts=bucket_counts,
            exemplars=[self._to_exemplar(exemplar) for exemplar in exemplars],
        )

    def _to_exemplar(self, exemplar: Any) -> Distribution.Exemplar:
        attachments: list[AnyProto] = []

        trace_id = exemplar.trace_id or INVALID_TRACE_ID
        span_id = exemplar.span_id or INVALID_SPAN_ID
        if trace_id != INVALID_TRACE_ID and span_id != INVALID_SPAN_ID:
            span_context = monitoring_v3.SpanContext(
                span_name=(
                    f"projects/{self._project_id}/traces/{format_trace_id(trace_id)}"
                    f"/spans/{format_span_id(span_id)}"
                )
            )
            attachment = AnyProto()
            attachment.Pack(monitoring_v3.SpanContext.pb(span_context))
            attachments.append(attachment)

        if exemplar.filtered_attributes:
            dropped = monitoring_v3.DroppedLabels(
                label={
                    key: attribute_to_label_value(value)
                    for key, value in exemplar.filtered_attributes.items()
                }
            )
            attachment = AnyProto()
            attachment.Pack(monitoring_v3.DroppedLabels.pb(dropped))
            attachments.append(attachment)

        return Distribution.Exemplar(
            value=float(exemplar.value),
            timestamp=timestamp_from_nanos(exemplar.time_unix_nano),
            attachments=attachments,
        )


def _int64(name: str, what: str, value: int) -> int:
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise TranslationError(
            f"Metric '{name}' {what} {value} does not fit in int64"
        )
    return value


def _metric_kind(metric: Metric) -> int:
    data = metric.data
    if isinstance(data, Gauge):
        return _GAUGE
    if isinstance(data, Sum):
        # Up-down counters are reported as gauges
        if not data.is_monotonic:
            return _GAUGE
        if data.aggregation_temporality == AggregationTemporality.CUMULATIVE:
            return _CUMULATIVE
        raise TranslationError(
            f"Sum '{metric.name}' uses unsupported aggregation temporality "
            f"{data.aggregation_temporality.name}"
        )
    if isinstance(data, Histogram):
        if data.aggregation_temporality == AggregationTemporality.CUMULATIVE:
            return _CUMULATIVE
        raise TranslationError(
            f"Histogram '{metric.name}' uses unsupported aggregation temporality "
            f"{data.aggregation_temporality.name}"
        )
    raise TranslationError(
        f"Metric '{metric.name}' has unsupported data type {type(data).__name__}"
    )


def _value_type(metric: Metric, first_point: Any) -> int:
    if isinstance(metric.data, Histogram):
        return MetricDescriptor.ValueType.DISTRIBUTION
    value = first_point.value
    if isinstance(value, int) and not isinstance(value, bool):
        return MetricDescriptor.ValueType.INT64
    return MetricDescriptor.ValueType.DOUBLE


def _point_labels(
    attributes: Mapping[str, Any] | None,
    scope: InstrumentationScope | None,
) -> dict[str, str]:
    """User labels first, then the instrumentation labels when absent.

    A user attribute that already uses a reserved key keeps its value.
    """
    labels = {
        key: attribute_to_label_value(value) for key, value in (attributes or {}).items()
    }
    labels.setdefault(LABEL_INSTRUMENTATION_SOURCE, scope.name if scope else "")
    labels.setdefault(
        LABEL_INSTRUMENTATION_VERSION, (scope.version or "") if scope else ""
    )
    return labels


def count_series(translated: Sequence[TranslatedMetric]) -> int:
    return sum(len(item.time_series) for item in translated)
