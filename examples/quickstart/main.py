"""
gcpotel Quickstart - send a few spans and metrics to Google Cloud

Run:
    export GOOGLE_CLOUD_PROJECT=my-project
    gcloud auth application-default login
    python examples/quickstart/main.py

View:
    Traces:  https://console.cloud.google.com/traces
    Metrics: Metrics Explorer, "workload.googleapis.com/quickstart.work_items"
"""

from __future__ import annotations

import random
import time
from pathlib import Path

from opentelemetry import metrics, trace

import gcpotel

INSTRUMENTATION_SCOPE = "gcpotel.examples.quickstart"


def do_work(description: str, work_items: metrics.Counter, duration: metrics.Histogram) -> None:
    tracer = trace.get_tracer(INSTRUMENTATION_SCOPE)
    with tracer.start_as_current_span(description):
        # Simulate a network request or an expensive disk operation
        seconds = 0.1 + random.randint(0, 4) * 0.1
        time.sleep(seconds)
        work_items.add(1, {"use_case": description.split(" - ")[0]})
        duration.record(seconds * 1000, {"use_case": description.split(" - ")[0]})


def my_use_case(description: str) -> None:
    tracer = trace.get_tracer(INSTRUMENTATION_SCOPE)
    meter = metrics.get_meter(INSTRUMENTATION_SCOPE)
    work_items = meter.create_counter(
        "quickstart.work_items", unit="1", description="Units of work done"
    )
    duration = meter.create_histogram(
        "quickstart.work_duration", unit="ms", description="Time spent per unit of work"
    )

    with tracer.start_as_current_span(description) as span:
        span.add_event("Event A")
        for i in range(3):
            do_work(f"{description} - Work #{i + 1}", work_items, duration)
        span.add_event("Event B")


def main() -> None:
    gcpotel.init(Path(__file__).parent / "gcpotel.yaml")
    try:
        my_use_case("One")
        my_use_case("Two")
    finally:
        # Flushes the last spans and metric points before exiting
        gcpotel.shutdown()
    print("[quickstart] Telemetry sent, see Cloud Trace and Cloud Monitoring")


if __name__ == "__main__":
    main()
