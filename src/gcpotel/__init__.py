"""Google Cloud exporters for OpenTelemetry Python.

Sends OpenTelemetry metrics to Cloud Monitoring and spans to Cloud Trace:

    import gcpotel
    gcpotel.init("/path/to/gcpotel.yaml")
"""

from __future__ import annotations

from gcpotel.exceptions import ConfigurationError

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "__version__",
    "init",
    "shutdown",
    "is_configured",
]


def __getattr__(name: str):
    if name in {"init", "shutdown", "is_configured"}:
        from gcpotel.api import _init

        return getattr(_init, name)
    raise AttributeError(f"module 'gcpotel' has no attribute '{name}'")


def __dir__() -> list[str]:
    return sorted(__all__)
