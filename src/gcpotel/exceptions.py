"""Exception classes for the gcpotel SDK."""


class GcpOtelError(Exception):
    """Base class for all gcpotel errors."""


class ConfigurationError(GcpOtelError):
    """Raised when SDK configuration is invalid.

    This exception is only raised during setup when configuration
    is invalid in strict validation mode. In permissive mode,
    configuration errors result in no-op exporters instead.
    """


class TranslationError(GcpOtelError):
    """Raised when a record has no Google Cloud representation.

    The exporter drops the offending record and keeps going with the
    rest of the batch.
    """


class RegistrationError(GcpOtelError):
    """Raised when a metric descriptor could not be registered."""


class TransportError(GcpOtelError):
    """Raised when a backend write call fails (network, auth, quota)."""
