"""Cloud Trace client seam."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence

from google.api_core.exceptions import GoogleAPIError
from google.cloud import trace_v2

from gcpotel.exceptions import TransportError

if TYPE_CHECKING:
    from google.auth.credentials import Credentials


class CloudTraceClient(Protocol):
    """Calls the span exporter needs from Cloud Trace."""

    def batch_write_spans(self, name: str, spans: Sequence[trace_v2.Span]) -> None:
        """Write spans under the project resource ``name``."""
        ...

    def close(self) -> None:
        """Release transport resources."""
        ...


class GoogleCloudTraceClient:
    """:class:`CloudTraceClient` backed by ``trace_v2.TraceServiceClient``.

    Args:
        client: Generated Cloud Trace client.
        deadline: Per-call timeout in seconds.
    """

    def __init__(self, client: trace_v2.TraceServiceClient, deadline: float) -> None:
        self._client = client
        self._deadline = deadline

    @classmethod
    def create(
        cls, credentials: Credentials | None, deadline: float
    ) -> GoogleCloudTraceClient:
        """Build a client from credentials (None means application default)."""
        return cls(trace_v2.TraceServiceClient(credentials=credentials), deadline=deadline)

    def batch_write_spans(self, name: str, spans: Sequence[trace_v2.Span]) -> None:
        request = trace_v2.BatchWriteSpansRequest(name=name, spans=list(spans))
        try:
            self._client.batch_write_spans(request=request, timeout=self._deadline)
        except GoogleAPIError as e:
            raise TransportError(f"batch_write_spans failed: {e}") from e

    def close(self) -> None:
        transport = getattr(self._client, "transport", None)
        if transport is not None:
            transport.close()
