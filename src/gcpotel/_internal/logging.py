"""Internal logging utilities."""

import logging

# Create SDK logger
logger = logging.getLogger("gcpotel")

# Default to WARNING to avoid noise
logger.setLevel(logging.WARNING)


def log_internal_error(operation: str, error: Exception) -> None:
    """Log an internal SDK error without raising to user code."""
    logger.warning(f"gcpotel internal error in {operation}: {error}", exc_info=True)


def log_dropped_record(kind: str, name: str, reason: object) -> None:
    """Log a record that was dropped from an export batch."""
    logger.warning("Dropping %s '%s' from export batch: %s", kind, name, reason)
