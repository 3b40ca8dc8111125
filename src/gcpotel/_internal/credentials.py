"""Google Cloud credential and project resolution."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import google.auth
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from gcpotel.exceptions import ConfigurationError

if TYPE_CHECKING:
    from google.auth.credentials import Credentials

    from gcpotel.api.types import Config

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

# Upper bound accepted for per-call RPC deadlines
MAX_DEADLINE_SECONDS = 600.0


def resolve_credentials(config: Config) -> tuple[Credentials, str]:
    """Resolve credentials and the target project for ``config``.

    An explicit ``credentials_file`` wins over application default
    credentials. An explicit ``project_id`` wins over the project the
    credentials belong to.

    Args:
        config: SDK configuration.

    Returns:
        Tuple of (credentials, project_id).

    Raises:
        ConfigurationError: If credentials cannot be loaded or no project
            id can be determined.
    """
    try:
        if config.credentials_file:
            credentials = service_account.Credentials.from_service_account_file(
                config.credentials_file, scopes=[CLOUD_PLATFORM_SCOPE]
            )
            detected_project = credentials.project_id
        else:
            credentials, detected_project = google.auth.default(
                scopes=[CLOUD_PLATFORM_SCOPE]
            )
    except (GoogleAuthError, OSError, ValueError) as e:
        raise ConfigurationError(f"Unable to load Google Cloud credentials: {e}") from e

    project_id = config.project_id or detected_project
    if not project_id:
        raise ConfigurationError(
            "Unable to determine the Google Cloud project id. Set project_id "
            "in the configuration or the GOOGLE_CLOUD_PROJECT environment variable."
        )

    logger.debug("Resolved Google Cloud project: %s", project_id)
    return credentials, project_id


def validate_deadline(deadline_seconds: float) -> None:
    """Raise ConfigurationError unless the RPC deadline is usable."""
    if not 0 < deadline_seconds <= MAX_DEADLINE_SECONDS:
        raise ConfigurationError(
            f"deadline_seconds must be in (0, {MAX_DEADLINE_SECONDS:g}], "
            f"got {deadline_seconds}"
        )
