"""SDK entry points: init(), shutdown(), is_configured()."""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from opentelemetry import metrics as metrics_api
from opentelemetry import trace as trace_api

from gcpotel.exceptions import ConfigurationError
from gcpotel.sdk.lifecycle import (
    is_configured as _is_configured,
    set_configured,
    shutdown as _shutdown,
)

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.trace import TracerProvider

    from gcpotel.api.types import Config

logger = logging.getLogger(__name__)

# Read by init() when called without a configuration
GCPOTEL_CONFIG_PATH_ENV = "GCPOTEL_CONFIG_PATH"


def _resolve_config(config: str | Path | Config | None) -> Config:
    """Turn any accepted ``init()`` argument into a Config.

    Raises:
        ConfigurationError: If no configuration source is available or the
            file cannot be loaded.
    """
    # Deferred: the loader imports api.types, which imports this package
    from gcpotel.api.types import Config as ConfigType
    from gcpotel.sdk.config.load import load_config

    if isinstance(config, ConfigType):
        return config
    if config is None:
        config = os.environ.get(GCPOTEL_CONFIG_PATH_ENV) or None
    if config is None:
        raise ConfigurationError(
            f"No configuration given: pass a Config or a YAML path to init(), "
            f"or set {GCPOTEL_CONFIG_PATH_ENV}."
        )
    return load_config(Path(config))


def _install(
    meter_provider: MeterProvider | None, tracer_provider: TracerProvider | None
) -> None:
    if meter_provider is not None:
        metrics_api.set_meter_provider(meter_provider)
    if tracer_provider is not None:
        trace_api.set_tracer_provider(tracer_provider)
    set_configured(meter_provider, tracer_provider)
    atexit.register(_shutdown)


def init(config: str | Path | Config | None = None) -> None:
    """Start exporting OpenTelemetry metrics and spans to Google Cloud.

    Builds a MeterProvider whose periodic reader feeds the Cloud Monitoring
    exporter and a TracerProvider whose span processor feeds the Cloud Trace
    exporter, installs both as the global providers and registers an
    atexit hook that shuts them down.

    A second call before shutdown() keeps the installed providers.

    Args:
        config: A :class:`~gcpotel.api.types.Config`, the path of a YAML
            configuration file, or None to read the path from
            ``GCPOTEL_CONFIG_PATH``.

    Raises:
        ConfigurationError: If no configuration is found, or setup fails in
            strict validation mode. In permissive mode setup failures only
            log a warning and leave telemetry disabled.
    """
    from gcpotel.sdk import pipeline

    if _is_configured():
        logger.warning(
            "init() already called; keeping the installed providers. "
            "Call shutdown() first to reconfigure."
        )
        return

    resolved = _resolve_config(config)

    try:
        resource = pipeline.create_resource(resolved)
        meter_provider = pipeline.create_meter_provider(resolved, resource)
        tracer_provider = pipeline.create_tracer_provider(resolved, resource)
    except ConfigurationError:
        raise
    except Exception as e:
        if resolved.is_strict:
            raise ConfigurationError(f"SDK initialization failed: {e}") from e
        logger.warning("SDK initialization failed, telemetry disabled: %s", e)
        _install(None, None)
        return

    _install(meter_provider, tracer_provider)
    logger.debug(
        "SDK initialized for service '%s' (metrics=%s, trace=%s)",
        resolved.service.name,
        meter_provider is not None,
        tracer_provider is not None,
    )


def shutdown() -> None:
    """Flush pending telemetry and release the providers.

    Safe to call more than once. Afterwards is_configured() returns False.
    """
    _shutdown()


def is_configured() -> bool:
    """Return True once init() has run and until shutdown()."""
    return _is_configured()
