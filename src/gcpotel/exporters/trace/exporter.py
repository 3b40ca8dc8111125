"""Cloud Trace span exporter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from gcpotel._internal.credentials import resolve_credentials, validate_deadline
from gcpotel._internal.logging import log_dropped_record, log_internal_error
from gcpotel._internal.state import ExporterState, ExportLifecycle
from gcpotel.exceptions import ConfigurationError, TranslationError
from gcpotel.exporters.trace.client import GoogleCloudTraceClient
from gcpotel.exporters.trace.translator import SpanTranslator
from gcpotel.resource_mapping import map_resource

if TYPE_CHECKING:
    from google.cloud import trace_v2
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import ReadableSpan

    from gcpotel.api.types import Config
    from gcpotel.exporters.trace.client import CloudTraceClient
    from gcpotel.resource_mapping import GcpResource

logger = logging.getLogger(__name__)


class CloudTraceSpanExporter(SpanExporter):
    """Exports finished spans to Google Cloud Trace.

    Spans that cannot be translated are dropped individually. All remaining
    spans of a batch go out in one ``batch_write_spans`` call.

    Args:
        project_id: Google Cloud project receiving the spans.
        client: Cloud Trace client.
    """

    def __init__(self, project_id: str, client: CloudTraceClient) -> None:
        self._project_name = f"projects/{project_id}"
        self._client = client
        self._translator = SpanTranslator(project_id)
        self._lifecycle = ExportLifecycle()

    @property
    def project_name(self) -> str:
        return self._project_name

    @property
    def state(self) -> ExporterState:
        return self._lifecycle.state

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Export a batch of spans. Never raises.

        Returns:
            SUCCESS if at least one span was written or nothing failed,
            FAILURE otherwise (including any call after shutdown).
        """
        if not self._lifecycle.begin_export():
            logger.warning("Span exporter is shut down, dropping batch")
            return SpanExportResult.FAILURE
        try:
            return self._export(spans)
        except Exception as e:
            log_internal_error("span export", e)
            return SpanExportResult.FAILURE
        finally:
            self._lifecycle.end_export()

    def _export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        translated: list[trace_v2.Span] = []
        failed = 0
        # id(resource) -> mapped resource, valid for this batch only
        mapped: dict[int, GcpResource] = {}

        for span in spans:
            try:
                resource = self._map_resource(span.resource, mapped)
                translated.append(self._translator.translate(span, resource))
            except TranslationError as e:
                log_dropped_record("span", span.name, e)
                failed += 1

        if translated:
            try:
                self._client.batch_write_spans(self._project_name, translated)
                logger.debug(
                    "Wrote %d spans to %s", len(translated), self._project_name
                )
            except Exception as e:
                logger.warning(
                    "Failed to write %d spans to %s: %s",
                    len(translated),
                    self._project_name,
                    e,
                )
                failed += len(translated)
                translated = []

        if failed and not translated:
            return SpanExportResult.FAILURE
        return SpanExportResult.SUCCESS

    @staticmethod
    def _map_resource(
        resource: Resource | None, mapped: dict[int, GcpResource]
    ) -> GcpResource | None:
        if resource is None:
            return None
        key = id(resource)
        if key not in mapped:
            mapped[key] = map_resource(resource)
        return mapped[key]

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        """Wait for in-flight exports. Nothing is buffered here."""
        return self._lifecycle.wait_idle(timeout_millis / 1000)

    def shutdown(self) -> None:
        """Stop accepting exports and close the client. Idempotent."""
        if not self._lifecycle.shutdown():
            logger.debug("Span exporter already shut down")
            return
        try:
            self._client.close()
        except Exception as e:
            log_internal_error("trace client shutdown", e)


class NoopSpanExporter(SpanExporter):
    """Stand-in exporter used when setup fails in permissive mode."""

    def __init__(self) -> None:
        self._lifecycle = ExportLifecycle()

    @property
    def state(self) -> ExporterState:
        return self._lifecycle.state

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if self._lifecycle.is_shutdown:
            return SpanExportResult.FAILURE
        return SpanExportResult.SUCCESS

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return not self._lifecycle.is_shutdown

    def shutdown(self) -> None:
        self._lifecycle.shutdown(0)


def create_span_exporter(config: Config) -> SpanExporter:
    """Create the Cloud Trace exporter for ``config``.

    Args:
        config: SDK configuration.

    Returns:
        A :class:`CloudTraceSpanExporter`, or a :class:`NoopSpanExporter`
        when setup fails in permissive mode.

    Raises:
        ConfigurationError: If setup fails in strict mode.
    """
    try:
        validate_deadline(config.deadline_seconds)
        credentials, project_id = resolve_credentials(config)
        client = GoogleCloudTraceClient.create(credentials, config.deadline_seconds)
    except Exception as e:
        if config.is_strict:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Span exporter setup failed: {e}") from e
        logger.warning("Span exporter setup failed, using no-op exporter: %s", e)
        return NoopSpanExporter()

    logger.debug("Cloud Trace exporter configured for project %s", project_id)
    return CloudTraceSpanExporter(project_id, client)
