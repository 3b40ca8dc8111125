"""Cloud Monitoring metric exporter.

This module provides the ``MetricExporter`` that the OpenTelemetry SDK's
metric readers call, plus a factory that builds it from SDK configuration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from google.cloud import monitoring_v3
from opentelemetry.sdk import metrics as sdk_metrics
from opentelemetry.sdk.metrics.export import (
    AggregationTemporality,
    MetricExporter,
    MetricExportResult,
)

from gcpotel._internal.credentials import resolve_credentials, validate_deadline
from gcpotel._internal.logging import log_dropped_record, log_internal_error
from gcpotel._internal.state import ExporterState, ExportLifecycle
from gcpotel.exceptions import ConfigurationError, RegistrationError, TranslationError
from gcpotel.exporters.metrics.client import GoogleCloudMetricClient
from gcpotel.exporters.metrics.descriptors import (
    MetricDescriptorCache,
    MetricDescriptorStrategy,
)
from gcpotel.exporters.metrics.translator import (
    DEFAULT_PREFIX,
    MetricTranslator,
    TranslatedMetric,
    count_series,
)
from gcpotel.resource_mapping import map_resource

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics.export import MetricsData

    from gcpotel.api.types import Config
    from gcpotel.exporters.metrics.client import CloudMetricClient

logger = logging.getLogger(__name__)

# Cloud Monitoring accepts at most 200 time series per CreateTimeSeries call
MAX_BATCH_WRITE = 200

# Cloud Monitoring custom metrics do not accept DELTA sums or distributions
_CUMULATIVE_TEMPORALITY = {
    sdk_metrics.Counter: AggregationTemporality.CUMULATIVE,
    sdk_metrics.UpDownCounter: AggregationTemporality.CUMULATIVE,
    sdk_metrics.Histogram: AggregationTemporality.CUMULATIVE,
    sdk_metrics.ObservableCounter: AggregationTemporality.CUMULATIVE,
    sdk_metrics.ObservableUpDownCounter: AggregationTemporality.CUMULATIVE,
    sdk_metrics.ObservableGauge: AggregationTemporality.CUMULATIVE,
}


class CloudMonitoringMetricExporter(MetricExporter):
    """Exports OpenTelemetry metrics to Google Cloud Monitoring.

    Each ``export`` call translates every metric in the batch, registers
    metric descriptors according to the descriptor strategy, and writes
    the resulting time series. Records that cannot be translated or whose
    descriptor registration fails are dropped individually; the batch is
    reported as failed only when records failed and none got through.

    Args:
        project_id: Google Cloud project receiving the metrics.
        client: Cloud Monitoring client.
        prefix: Metric type prefix.
        descriptor_strategy: How often descriptors are registered.
        descriptor_cache: Pre-built cache, mainly for tests. Overrides
            ``descriptor_strategy`` when given.
    """

    def __init__(
        self,
        project_id: str,
        client: CloudMetricClient,
        prefix: str = DEFAULT_PREFIX,
        descriptor_strategy: MetricDescriptorStrategy = MetricDescriptorStrategy.SEND_ONCE,
        descriptor_cache: MetricDescriptorCache | None = None,
    ) -> None:
        super().__init__(preferred_temporality=_CUMULATIVE_TEMPORALITY)
        self._project_name = f"projects/{project_id}"
        self._client = client
        self._translator = MetricTranslator(project_id, prefix)
        self._descriptors = descriptor_cache or MetricDescriptorCache(descriptor_strategy)
        self._lifecycle = ExportLifecycle()

    @property
    def project_name(self) -> str:
        return self._project_name

    @property
    def state(self) -> ExporterState:
        return self._lifecycle.state

    @property
    def descriptor_cache(self) -> MetricDescriptorCache:
        return self._descriptors

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10_000,
        **kwargs: object,
    ) -> MetricExportResult:
        """Export a batch of metrics.

        Never raises: every failure is logged and folded into the result.

        Args:
            metrics_data: Metrics collected by the reader.
            timeout_millis: Unused; RPC deadlines come from the client.

        Returns:
            SUCCESS if at least one record was written or nothing failed,
            FAILURE otherwise (including any call after shutdown).
        """
        if not self._lifecycle.begin_export():
            logger.warning("Metric exporter is shut down, dropping batch")
            return MetricExportResult.FAILURE
        try:
            return self._export(metrics_data)
        except Exception as e:
            log_internal_error("metric export", e)
            return MetricExportResult.FAILURE
        finally:
            self._lifecycle.end_export()

    def _export(self, metrics_data: MetricsData) -> MetricExportResult:
        records: list[TranslatedMetric] = []
        failed = 0

        for resource_metrics in metrics_data.resource_metrics:
            resource = map_resource(resource_metrics.resource)
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    try:
                        record = self._translator.translate(
                            metric, scope_metrics.scope, resource
                        )
                        if record is None:
                            continue
                        self._ensure_descriptor(record)
                    except (TranslationError, RegistrationError) as e:
                        log_dropped_record("metric", metric.name, e)
                        failed += 1
                        continue
                    records.append(record)

        submitted, write_failed = self._write(records)
        failed += write_failed

        if failed and not submitted:
            return MetricExportResult.FAILURE
        return MetricExportResult.SUCCESS

    def _ensure_descriptor(self, record: TranslatedMetric) -> None:
        identity = record.identity
        request = monitoring_v3.CreateMetricDescriptorRequest(
            name=self._project_name,
            metric_descriptor=record.descriptor,
        )
        if not self._descriptors.should_register(identity):
            return

        try:
            self._client.create_metric_descriptor(request)
        except Exception as e:
            self._descriptors.mark_failed(identity)
            raise RegistrationError(
                f"failed to register descriptor {record.descriptor.type}: {e}"
            ) from e
        self._descriptors.mark_registered(identity)

    def _write(self, records: list[TranslatedMetric]) -> tuple[int, int]:
        """Write all series in chunks.

        Returns:
            Tuple of (records written, records failed).
        """
        series = [
            (index, time_series)
            for index, record in enumerate(records)
            for time_series in record.time_series
        ]
        failed_records: set[int] = set()

        for start in range(0, len(series), MAX_BATCH_WRITE):
            chunk = series[start : start + MAX_BATCH_WRITE]
            try:
                self._client.create_time_series(
                    self._project_name, [time_series for _, time_series in chunk]
                )
            except Exception as e:
                logger.warning(
                    "Failed to write %d time series to %s: %s",
                    len(chunk),
                    self._project_name,
                    e,
                )
                failed_records.update(index for index, _ in chunk)

        if records:
            logger.debug(
                "Wrote %d time series for %d metrics to %s",
                count_series(records),
                len(records) - len(failed_records),
                self._project_name,
            )
        return len(records) - len(failed_records), len(failed_records)

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        """Wait for in-flight exports. Nothing is buffered here."""
        return self._lifecycle.wait_idle(timeout_millis / 1000)

    def shutdown(self, timeout_millis: float = 30_000, **kwargs: object) -> None:
        """Stop accepting exports and close the client. Idempotent."""
        if not self._lifecycle.shutdown(timeout_millis / 1000):
            logger.debug("Metric exporter already shut down")
            return
        try:
            self._client.close()
        except Exception as e:
            log_internal_error("metric client shutdown", e)


class NoopMetricExporter(MetricExporter):
    """Stand-in exporter used when setup fails in permissive mode.

    Drops every batch without contacting Cloud Monitoring. The setup
    failure was already logged once, so exports report SUCCESS to keep the
    reader quiet, except after shutdown where they report FAILURE.
    """

    def __init__(self) -> None:
        super().__init__(preferred_temporality=_CUMULATIVE_TEMPORALITY)
        self._lifecycle = ExportLifecycle()

    @property
    def state(self) -> ExporterState:
        return self._lifecycle.state

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10_000,
        **kwargs: object,
    ) -> MetricExportResult:
        if self._lifecycle.is_shutdown:
            return MetricExportResult.FAILURE
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return not self._lifecycle.is_shutdown

    def shutdown(self, timeout_millis: float = 30_000, **kwargs: object) -> None:
        self._lifecycle.shutdown(0)


def create_metric_exporter(config: Config) -> MetricExporter:
    """Create the Cloud Monitoring exporter for ``config``.

    Args:
        config: SDK configuration.

    Returns:
        A :class:`CloudMonitoringMetricExporter`, or a
        :class:`NoopMetricExporter` when setup fails in permissive mode.

    Raises:
        ConfigurationError: If setup fails in strict mode.
    """
    try:
        validate_deadline(config.deadline_seconds)
        credentials, project_id = resolve_credentials(config)
        client = GoogleCloudMetricClient.create(credentials, config.deadline_seconds)
    except Exception as e:
        if config.is_strict:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Metric exporter setup failed: {e}") from e
        logger.warning("Metric exporter setup failed, using no-op exporter: %s", e)
        return NoopMetricExporter()

    logger.debug("Cloud Monitoring exporter configured for project %s", project_id)
    return CloudMonitoringMetricExporter(
        project_id,
        client,
        prefix=config.metrics.prefix,
        descriptor_strategy=config.metrics.descriptor_strategy,
    )

