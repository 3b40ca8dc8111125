"""Shared pytest configuration and fixtures.

This module provides test fixtures that:
1. Reset OpenTelemetry global state between tests for isolation
2. Use InMemorySpanExporter to produce real finished spans
3. Build real SDK metric batches without a running MeterProvider
4. Provide typed fakes (FakeMetricClient, FakeTraceClient) instead of MagicMock

Following OpenTelemetry Python SDK testing patterns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Generator

import pytest
from opentelemetry import metrics as metrics_api
from opentelemetry import trace as trace_api
from opentelemetry.sdk.metrics.export import (
    Metric,
    MetricsData,
    ResourceMetrics,
    ScopeMetrics,
)
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.util.instrumentation import InstrumentationScope

from tests.fakes import FakeMetricClient, FakeTraceClient

if TYPE_CHECKING:
    from pathlib import Path


def _reset_trace_globals() -> None:
    """Reset OpenTelemetry trace globals for test isolation.

    WARNING: Only use this in tests. This accesses internal OTel APIs.
    """
    from opentelemetry.util._once import Once

    current_provider = trace_api.get_tracer_provider()
    shutdown_fn = getattr(current_provider, "shutdown", None)
    if callable(shutdown_fn):
        try:
            shutdown_fn()
        except Exception:  # nosec B110 - cleanup errors should not fail tests
            pass

    trace_api._TRACER_PROVIDER_SET_ONCE = Once()
    trace_api._TRACER_PROVIDER = None
    trace_api._PROXY_TRACER_PROVIDER = trace_api.ProxyTracerProvider()


def _reset_metrics_globals() -> None:
    """Reset OpenTelemetry metrics globals for test isolation."""
    from opentelemetry.metrics import _internal as metrics_internal
    from opentelemetry.util._once import Once

    current_provider = metrics_api.get_meter_provider()
    shutdown_fn = getattr(current_provider, "shutdown", None)
    if callable(shutdown_fn):
        try:
            shutdown_fn()
        except Exception:  # nosec B110 - cleanup errors should not fail tests
            pass

    metrics_internal._METER_PROVIDER_SET_ONCE = Once()
    metrics_internal._METER_PROVIDER = None
    metrics_internal._PROXY_METER_PROVIDER = metrics_internal._ProxyMeterProvider()


def _reset_sdk_state() -> None:
    """Reset the gcpotel SDK state for test isolation."""
    from gcpotel.sdk import lifecycle

    lifecycle._configured = False
    lifecycle._meter_provider = None
    lifecycle._tracer_provider = None


@pytest.fixture(autouse=True)
def reset_otel_state() -> Generator[None, None, None]:
    """Reset OpenTelemetry global state before and after each test."""
    _reset_trace_globals()
    _reset_metrics_globals()
    _reset_sdk_state()
    yield
    _reset_trace_globals()
    _reset_metrics_globals()
    _reset_sdk_state()


@pytest.fixture
def fake_metric_client() -> FakeMetricClient:
    return FakeMetricClient()


@pytest.fixture
def fake_trace_client() -> FakeTraceClient:
    return FakeTraceClient()


@pytest.fixture
def resource() -> Resource:
    """A resource with no cloud.platform, mapping to generic_task."""
    return Resource({SERVICE_NAME: "test-service"})


@pytest.fixture
def scope() -> InstrumentationScope:
    return InstrumentationScope("test-instrumentation", "1.2.3")


@pytest.fixture
def make_metrics_data(
    resource: Resource, scope: InstrumentationScope
) -> Callable[..., MetricsData]:
    """Factory wrapping metrics into a single-resource, single-scope batch."""

    def _make(*metrics: Metric, batch_resource: Resource | None = None) -> MetricsData:
        return MetricsData(
            resource_metrics=[
                ResourceMetrics(
                    resource=batch_resource or resource,
                    scope_metrics=[
                        ScopeMetrics(scope=scope, metrics=list(metrics), schema_url="")
                    ],
                    schema_url="",
                )
            ]
        )

    return _make


@pytest.fixture
def in_memory_exporter() -> InMemorySpanExporter:
    """Provide an InMemorySpanExporter for capturing spans in tests."""
    return InMemorySpanExporter()


@pytest.fixture
def test_tracer_provider(
    in_memory_exporter: InMemorySpanExporter, resource: Resource
) -> TracerProvider:
    """Create a test TracerProvider with in-memory exporter."""
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(SimpleSpanProcessor(in_memory_exporter))
    return provider


@pytest.fixture
def tracer(test_tracer_provider: TracerProvider) -> trace_api.Tracer:
    return test_tracer_provider.get_tracer("test-instrumentation", "1.2.3")


@pytest.fixture
def valid_config_content() -> str:
    """Return valid YAML config content for tests."""
    return """service:
  name: test-service
  version: "1.0.0"

project_id: test-project

metrics:
  prefix: custom.googleapis.com
  descriptor_strategy: always_send
  export_interval_seconds: 30

trace:
  batch: false

validation:
  mode: permissive
"""


@pytest.fixture
def valid_config_file(tmp_path: "Path", valid_config_content: str) -> "Path":
    """Create a valid config file and return its path."""
    config_path = tmp_path / "gcpotel.yaml"
    config_path.write_text(valid_config_content)
    return config_path
