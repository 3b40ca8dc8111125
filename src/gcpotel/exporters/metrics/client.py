"""Cloud Monitoring client seam.

The exporter talks to :class:`CloudMetricClient`. Production code uses
:class:`GoogleCloudMetricClient`, a thin wrapper around the generated
``MetricServiceClient``; tests pass a fake.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, Sequence

from google.api_core.exceptions import GoogleAPIError
from google.cloud import monitoring_v3

from gcpotel.exceptions import TransportError

if TYPE_CHECKING:
    from google.auth.credentials import Credentials

logger = logging.getLogger(__name__)


class CloudMetricClient(Protocol):
    """Calls the metric exporter needs from Cloud Monitoring."""

    def create_metric_descriptor(
        self, request: monitoring_v3.CreateMetricDescriptorRequest
    ) -> object:
        """Register (or re-register) a metric descriptor."""
        ...

    def create_time_series(
        self, name: str, time_series: Sequence[monitoring_v3.TimeSeries]
    ) -> None:
        """Write time series under the project resource ``name``."""
        ...

    def close(self) -> None:
        """Release transport resources."""
        ...


class GoogleCloudMetricClient:
    """:class:`CloudMetricClient` backed by ``monitoring_v3.MetricServiceClient``.

    Args:
        client: Generated Cloud Monitoring client.
        deadline: Per-call timeout in seconds.
    """

    def __init__(
        self, client: monitoring_v3.MetricServiceClient, deadline: float
    ) -> None:
        self._client = client
        self._deadline = deadline

    @classmethod
    def create(
        cls, credentials: Credentials | None, deadline: float
    ) -> GoogleCloudMetricClient:
        """Build a client from credentials (None means application default)."""
        return cls(
            monitoring_v3.MetricServiceClient(credentials=credentials),
            deadline=deadline,
        )

    def create_metric_descriptor(
        self, request: monitoring_v3.CreateMetricDescriptorRequest
    ) -> object:
        try:
            return self._client.create_metric_descriptor(
                request=request, timeout=self._deadline
            )
        except GoogleAPIError as e:
            raise TransportError(f"create_metric_descriptor failed: {e}") from e

    def create_time_series(
        self, name: str, time_series: Sequence[monitoring_v3.TimeSeries]
    ) -> None:
        request = monitoring_v3.CreateTimeSeriesRequest(
            name=name, time_series=list(time_series)
        )
        try:
            self._client.create_time_series(request=request, timeout=self._deadline)
        except GoogleAPIError as e:
            raise TransportError(f"create_time_series failed: {e}") from e

    def close(self) -> None:
        transport = getattr(self._client, "transport", None)
        if transport is not None:
            transport.close()
