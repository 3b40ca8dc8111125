"""Process-wide SDK state: the installed providers and whether init() ran."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.trace import TracerProvider

logger = logging.getLogger(__name__)

_configured: bool = False
_meter_provider: MeterProvider | None = None
_tracer_provider: TracerProvider | None = None


def set_configured(
    meter_provider: MeterProvider | None,
    tracer_provider: TracerProvider | None,
) -> None:
    """Mark the SDK as configured with the given providers.

    Args:
        meter_provider: MeterProvider exporting to Cloud Monitoring, if any.
        tracer_provider: TracerProvider exporting to Cloud Trace, if any.
    """
    global _configured, _meter_provider, _tracer_provider
    _configured = True
    _meter_provider = meter_provider
    _tracer_provider = tracer_provider


def is_configured() -> bool:
    """Check if the SDK has been initialized."""
    return _configured


def get_meter_provider() -> MeterProvider | None:
    """Get the active MeterProvider."""
    return _meter_provider


def get_tracer_provider() -> TracerProvider | None:
    """Get the active TracerProvider."""
    return _tracer_provider


def shutdown() -> None:
    """Shut down both providers, flushing what they still hold.

    Provider errors are logged, never raised. Calling it again is a no-op.
    """
    global _configured, _meter_provider, _tracer_provider
    for name, provider in (
        ("MeterProvider", _meter_provider),
        ("TracerProvider", _tracer_provider),
    ):
        if provider is None:
            continue
        try:
            provider.shutdown()
            logger.debug("%s shutdown complete", name)
        except Exception as e:
            logger.warning("Error during %s shutdown: %s", name, e)
    _configured = False
    _meter_provider = None
    _tracer_provider = None
