"""Integration test fixtures for the gcpotel SDK.

These fixtures wire the real exporters into real SDK providers while the
Google Cloud clients are replaced with fakes, so no external service is
contacted.
"""

from __future__ import annotations

from typing import Generator

import pytest

from gcpotel.api.types import Config
from gcpotel.exporters.metrics import exporter as metrics_exporter
from gcpotel.exporters.metrics.exporter import CloudMonitoringMetricExporter
from gcpotel.exporters.trace import exporter as trace_exporter
from gcpotel.exporters.trace.exporter import CloudTraceSpanExporter
from tests.builders import PROJECT_ID
from tests.fakes import FakeMetricClient, FakeTraceClient


@pytest.fixture
def patched_exporter_factories(
    monkeypatch: pytest.MonkeyPatch,
    fake_metric_client: FakeMetricClient,
    fake_trace_client: FakeTraceClient,
) -> Generator[tuple[FakeMetricClient, FakeTraceClient], None, None]:
    """Make the exporter factories build exporters around fake clients.

    Usage:
        def test_something(patched_exporter_factories):
            metric_client, trace_client = patched_exporter_factories
            gcpotel.init(config)
    """

    def create_metric_exporter(config: Config) -> CloudMonitoringMetricExporter:
        return CloudMonitoringMetricExporter(
            config.project_id or PROJECT_ID,
            fake_metric_client,
            prefix=config.metrics.prefix,
            descriptor_strategy=config.metrics.descriptor_strategy,
        )

    def create_span_exporter(config: Config) -> CloudTraceSpanExporter:
        return CloudTraceSpanExporter(config.project_id or PROJECT_ID, fake_trace_client)

    monkeypatch.setattr(
        metrics_exporter, "create_metric_exporter", create_metric_exporter
    )
    monkeypatch.setattr(trace_exporter, "create_span_exporter", create_span_exporter)

    yield fake_metric_client, fake_trace_client
