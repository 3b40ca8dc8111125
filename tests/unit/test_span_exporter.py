"""Unit tests for the Cloud Trace span exporter."""

from __future__ import annotations

import pytest
from opentelemetry import trace as trace_api
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from gcpotel._internal.state import ExporterState
from gcpotel.api.types import Config, ServiceConfig, ValidationConfig
from gcpotel.exceptions import ConfigurationError
from gcpotel.exporters.trace import exporter as exporter_module
from gcpotel.exporters.trace.exporter import (
    CloudTraceSpanExporter,
    NoopSpanExporter,
    create_span_exporter,
)
from tests.builders import PROJECT_ID
from tests.fakes import FakeTraceClient


@pytest.fixture
def exporter(fake_trace_client: FakeTraceClient) -> CloudTraceSpanExporter:
    return CloudTraceSpanExporter(PROJECT_ID, fake_trace_client)


@pytest.fixture
def finished_spans(
    tracer: trace_api.Tracer, in_memory_exporter: InMemorySpanExporter
) -> tuple[ReadableSpan, ...]:
    with tracer.start_as_current_span("first"):
        pass
    with tracer.start_as_current_span("second"):
        pass
    return in_memory_exporter.get_finished_spans()


@pytest.mark.unit
class TestExport:
    def test_writes_all_spans_in_one_call(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
        finished_spans: tuple[ReadableSpan, ...],
    ) -> None:
        result = exporter.export(finished_spans)

        assert result is SpanExportResult.SUCCESS
        assert len(fake_trace_client.calls) == 1
        assert fake_trace_client.calls[0].name == "projects/test-project"
        names = [span.display_name.value for span in fake_trace_client.written_spans]
        assert names == ["first", "second"]

    def test_resource_is_attached(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
        finished_spans: tuple[ReadableSpan, ...],
    ) -> None:
        exporter.export(finished_spans)

        attributes = fake_trace_client.written_spans[0].attributes.attribute_map
        assert attributes["g.co/r/generic_task/job"].string_value.value == (
            "test-service"
        )

    def test_partial_validity_succeeds(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
        finished_spans: tuple[ReadableSpan, ...],
    ) -> None:
        """
        GIVEN a batch with one valid and one untranslatable span
        WHEN it is exported
        THEN the valid span is written and the result is SUCCESS
        """
        broken = ReadableSpan(name="broken", context=None, start_time=1, end_time=2)

        result = exporter.export([finished_spans[0], broken])

        assert result is SpanExportResult.SUCCESS
        assert len(fake_trace_client.written_spans) == 1

    def test_integer_attribute_beyond_int64_is_sent_as_string(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
        tracer: trace_api.Tracer,
        in_memory_exporter: InMemorySpanExporter,
    ) -> None:
        """
        GIVEN a batch where one span has an attribute beyond int64
        WHEN it is exported
        THEN both spans are written and the large value becomes a string
        """
        with tracer.start_as_current_span("ok"):
            pass
        with tracer.start_as_current_span("huge", attributes={"n": 2**64}):
            pass

        result = exporter.export(in_memory_exporter.get_finished_spans())

        assert result is SpanExportResult.SUCCESS
        written = fake_trace_client.written_spans
        assert [span.display_name.value for span in written] == ["ok", "huge"]
        assert written[1].attributes.attribute_map["n"].string_value.value == str(
            2**64
        )

    def test_all_untranslatable_fails(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
    ) -> None:
        broken = ReadableSpan(name="broken", context=None, start_time=1, end_time=2)

        result = exporter.export([broken])

        assert result is SpanExportResult.FAILURE
        fake_trace_client.assert_not_called()

    def test_empty_batch_succeeds_without_calls(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
    ) -> None:
        assert exporter.export([]) is SpanExportResult.SUCCESS
        fake_trace_client.assert_not_called()

    def test_transport_failure_fails_export(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
        finished_spans: tuple[ReadableSpan, ...],
    ) -> None:
        fake_trace_client.fail_writes = True

        result = exporter.export(finished_spans)

        assert result is SpanExportResult.FAILURE
        assert exporter.state is ExporterState.READY


@pytest.mark.unit
class TestLifecycle:
    def test_export_after_shutdown_fails_without_calls(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
        finished_spans: tuple[ReadableSpan, ...],
    ) -> None:
        exporter.shutdown()

        result = exporter.export(finished_spans)

        assert result is SpanExportResult.FAILURE
        fake_trace_client.assert_not_called()
        assert fake_trace_client.closed is True

    def test_shutdown_is_idempotent(
        self,
        exporter: CloudTraceSpanExporter,
        fake_trace_client: FakeTraceClient,
    ) -> None:
        exporter.shutdown()
        fake_trace_client.closed = False

        exporter.shutdown()

        assert fake_trace_client.closed is False
        assert exporter.state is ExporterState.SHUTDOWN

    def test_force_flush(self, exporter: CloudTraceSpanExporter) -> None:
        assert exporter.force_flush() is True
        exporter.shutdown()
        assert exporter.force_flush() is False


@pytest.mark.unit
class TestNoopExporter:
    def test_succeeds_until_shutdown(
        self, finished_spans: tuple[ReadableSpan, ...]
    ) -> None:
        exporter = NoopSpanExporter()

        assert exporter.export(finished_spans) is SpanExportResult.SUCCESS
        exporter.shutdown()
        assert exporter.export(finished_spans) is SpanExportResult.FAILURE


@pytest.mark.unit
class TestCreateSpanExporter:
    def test_builds_exporter_from_config(
        self,
        monkeypatch: pytest.MonkeyPatch,
        fake_trace_client: FakeTraceClient,
    ) -> None:
        monkeypatch.setattr(
            exporter_module,
            "resolve_credentials",
            lambda config: (object(), "detected-project"),
        )
        monkeypatch.setattr(
            exporter_module.GoogleCloudTraceClient,
            "create",
            classmethod(lambda cls, credentials, deadline: fake_trace_client),
        )

        exporter = create_span_exporter(Config(service=ServiceConfig(name="svc")))

        assert isinstance(exporter, CloudTraceSpanExporter)
        assert exporter.project_name == "projects/detected-project"

    def test_permissive_failure_returns_noop(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def fail(config: Config) -> None:
            raise ConfigurationError("no credentials")

        monkeypatch.setattr(exporter_module, "resolve_credentials", fail)

        exporter = create_span_exporter(Config(service=ServiceConfig(name="svc")))

        assert isinstance(exporter, NoopSpanExporter)

    def test_strict_failure_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(config: Config) -> None:
            raise ConfigurationError("no credentials")

        monkeypatch.setattr(exporter_module, "resolve_credentials", fail)
        config = Config(
            service=ServiceConfig(name="svc"),
            validation=ValidationConfig(mode="strict"),
        )

        with pytest.raises(ConfigurationError, match="no credentials"):
            create_span_exporter(config)
