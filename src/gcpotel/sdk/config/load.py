"""Configuration loading, parsing, and validation for the gcpotel SDK.

A configuration file looks like::

    service:
      name: checkout
      version: "1.4.2"
    project_id: ${GOOGLE_CLOUD_PROJECT}
    credentials_file: keys/exporter.json
    deadline_seconds: 10
    metrics:
      prefix: workload.googleapis.com
      descriptor_strategy: send_once
      export_interval_seconds: 60
    trace:
      batch: true
    validation:
      mode: strict
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

from gcpotel._internal.credentials import validate_deadline
from gcpotel.api.types import (
    DEFAULT_DEADLINE_SECONDS,
    Config,
    MetricsConfig,
    ServiceConfig,
    TraceConfig,
    ValidationConfig,
)
from gcpotel.exceptions import ConfigurationError
from gcpotel.exporters.metrics.descriptors import MetricDescriptorStrategy
from gcpotel.exporters.metrics.translator import DEFAULT_PREFIX

logger = logging.getLogger(__name__)

# ${VAR_NAME} references inside string values
_ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")

# Fallback for project_id when the config file leaves it out
GOOGLE_CLOUD_PROJECT_ENV = "GOOGLE_CLOUD_PROJECT"

_VALIDATION_MODES = ("strict", "permissive")


def _expand_env(value: Any, strict: bool) -> Any:
    """Replace ``${VAR}`` references in every string of a parsed YAML tree.

    Raises:
        ConfigurationError: If a referenced variable is unset and ``strict``.
    """
    if isinstance(value, dict):
        return {key: _expand_env(item, strict) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item, strict) for item in value]
    if not isinstance(value, str):
        return value

    def lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in os.environ:
            return os.environ[name]
        if strict:
            raise ConfigurationError(f"Environment variable '{name}' is not set")
        logger.warning("Environment variable '%s' is not set, substituting ''", name)
        return ""

    return _ENV_REFERENCE.sub(lookup, value)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, Mapping):
        logger.warning("Ignoring '%s' section: expected a mapping", name)
        return {}
    return value


def _validation_mode(section: Mapping[str, Any]) -> str:
    mode = section.get("mode", "permissive")
    if mode in _VALIDATION_MODES:
        return mode
    logger.warning("Unknown validation mode '%s', using permissive", mode)
    return "permissive"


def _descriptor_strategy(value: Any) -> MetricDescriptorStrategy:
    try:
        return MetricDescriptorStrategy(str(value).lower())
    except ValueError:
        logger.warning(
            "Unknown descriptor_strategy '%s', using '%s'",
            value,
            MetricDescriptorStrategy.SEND_ONCE.value,
        )
        return MetricDescriptorStrategy.SEND_ONCE


def _number(value: Any, option: str, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s '%s', using %s", option, value, default)
        return default


def _flag(value: Any, option: str, default: bool) -> bool:
    """Read a boolean option, accepting "true" and "false" strings from ${ENV}."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    logger.warning("Invalid %s '%s', using %s", option, value, default)
    return default


def _metrics_config(section: Mapping[str, Any]) -> MetricsConfig:
    return MetricsConfig(
        enabled=_flag(section.get("enabled", True), "metrics.enabled", True),
        prefix=section.get("prefix", DEFAULT_PREFIX),
        descriptor_strategy=_descriptor_strategy(
            section.get("descriptor_strategy", MetricDescriptorStrategy.SEND_ONCE.value)
        ),
        export_interval_seconds=_number(
            section.get("export_interval_seconds", 60.0),
            "metrics.export_interval_seconds",
            60.0,
        ),
    )


def _credentials_path(value: str | None, base_dir: Path | None) -> str | None:
    """Anchor a relative key file path at the directory of the config file."""
    if not value or base_dir is None or Path(value).is_absolute():
        return value
    return str(base_dir / value)


def validate_config(config: Config) -> list[str]:
    """Check a parsed configuration.

    Args:
        config: Configuration to check.

    Returns:
        Human-readable problems, empty when the configuration is usable.
    """
    problems: list[str] = []
    if not config.service.name:
        problems.append("service.name is required")
    try:
        validate_deadline(config.deadline_seconds)
    except ConfigurationError as e:
        problems.append(str(e))
    if config.metrics.export_interval_seconds <= 0:
        problems.append("metrics.export_interval_seconds must be positive")
    if config.credentials_file and not Path(config.credentials_file).exists():
        problems.append(f"Credentials file not found: {config.credentials_file}")
    return problems


def config_from_dict(
    data: Mapping[str, Any],
    base_dir: Path | None = None,
    strict: bool | None = None,
) -> Config:
    """Build a validated Config from already-parsed YAML data.

    Args:
        data: Top-level configuration mapping.
        base_dir: Directory that relative ``credentials_file`` paths are
            resolved against.
        strict: Force the validation mode. None keeps the mode from
            ``data`` (permissive when absent).

    Returns:
        The configuration.

    Raises:
        ConfigurationError: If an environment reference is unset or the
            configuration is invalid, in strict mode only.
    """
    mode = _validation_mode(_section(data, "validation"))
    if strict is not None:
        mode = "strict" if strict else "permissive"

    data = _expand_env(dict(data), strict=mode == "strict")
    service = _section(data, "service")
    trace = _section(data, "trace")

    config = Config(
        service=ServiceConfig(
            name=service.get("name", ""),
            version=service.get("version"),
        ),
        project_id=data.get("project_id") or os.environ.get(GOOGLE_CLOUD_PROJECT_ENV),
        credentials_file=_credentials_path(data.get("credentials_file"), base_dir),
        deadline_seconds=_number(
            data.get("deadline_seconds", DEFAULT_DEADLINE_SECONDS),
            "deadline_seconds",
            DEFAULT_DEADLINE_SECONDS,
        ),
        metrics=_metrics_config(_section(data, "metrics")),
        trace=TraceConfig(
            enabled=_flag(trace.get("enabled", True), "trace.enabled", True),
            batch=_flag(trace.get("batch", True), "trace.batch", True),
        ),
        validation=ValidationConfig(mode=mode),
    )

    problems = validate_config(config)
    if problems and config.is_strict:
        raise ConfigurationError(
            f"Configuration validation failed: {'; '.join(problems)}"
        )
    if problems:
        logger.warning("Configuration problems ignored in permissive mode: %s", problems)
    return config


def load_config(path: str | Path, strict: bool | None = None) -> Config:
    """Read a YAML configuration file.

    Args:
        path: Location of the YAML file.
        strict: Force the validation mode instead of reading it from the file.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, does
            not hold a mapping, or fails validation in strict mode.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")

    return config_from_dict(data, base_dir=path.parent, strict=strict)
