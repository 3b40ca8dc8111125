"""Translate finished OpenTelemetry spans into Cloud Trace spans."""

from __future__ import annotations

import logging
from itertools import chain
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from google.cloud import trace_v2
from google.rpc import code_pb2, status_pb2
from opentelemetry.sdk.version import __version__ as otel_sdk_version
from opentelemetry.trace import SpanKind, StatusCode, format_span_id, format_trace_id

from gcpotel import __version__
from gcpotel._internal.timestamps import timestamp_from_nanos
from gcpotel.exceptions import TranslationError

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import Event, ReadableSpan
    from opentelemetry.trace import Link

    from gcpotel.resource_mapping import GcpResource

logger = logging.getLogger(__name__)

# Cloud Trace limits
MAX_DISPLAY_NAME_BYTES = 128
MAX_ATTRIBUTE_KEY_BYTES = 128
MAX_ATTRIBUTE_VALUE_BYTES = 256
MAX_SPAN_ATTRIBUTES = 32
MAX_EVENT_ATTRIBUTES = 4
MAX_LINK_ATTRIBUTES = 32
MAX_ANNOTATIONS = 32
MAX_LINKS = 128

# Bounds of AttributeValue.int_value
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

AGENT_ATTRIBUTE = "g.co/agent"
AGENT = f"opentelemetry-python {otel_sdk_version}; gcpotel {__version__}"

# OpenTelemetry HTTP semantic conventions -> Cloud Trace well-known labels
ATTRIBUTE_MAPPING = {
    "http.host": "/http/host",
    "http.method": "/http/method",
    "http.target": "/http/path",
    "http.status_code": "/http/status_code",
    "http.url": "/http/url",
    "http.user_agent": "/http/user_agent",
    "http.route": "/http/route",
    "http.request_content_length": "/http/request/size",
    "http.response_content_length": "/http/response/size",
}

_SPAN_KIND = {
    SpanKind.INTERNAL: trace_v2.Span.SpanKind.INTERNAL,
    SpanKind.SERVER: trace_v2.Span.SpanKind.SERVER,
    SpanKind.CLIENT: trace_v2.Span.SpanKind.CLIENT,
    SpanKind.PRODUCER: trace_v2.Span.SpanKind.PRODUCER,
    SpanKind.CONSUMER: trace_v2.Span.SpanKind.CONSUMER,
}


def truncatable_string(value: str, limit: int) -> trace_v2.TruncatableString:
    """Truncate ``value`` to ``limit`` UTF-8 bytes without splitting a character."""
    encoded = value.encode("utf-8")
    if len(encoded) <= limit:
        return trace_v2.TruncatableString(value=value, truncated_byte_count=0)
    truncated = encoded[:limit].decode("utf-8", errors="ignore")
    return trace_v2.TruncatableString(
        value=truncated,
        truncated_byte_count=len(encoded) - len(truncated.encode("utf-8")),
    )


def attribute_value(value: Any) -> trace_v2.AttributeValue | None:
    """Convert an OpenTelemetry attribute value, or None if it has no form.

    Integers outside the int64 range are sent as strings.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return trace_v2.AttributeValue(bool_value=value)
    if isinstance(value, int) and _INT64_MIN <= value <= _INT64_MAX:
        return trace_v2.AttributeValue(int_value=value)
    if isinstance(value, str):
        text = value
    elif isinstance(value, (list, tuple)):
        text = ",".join(str(item) for item in value)
    else:
        text = str(value)
    return trace_v2.AttributeValue(
        string_value=truncatable_string(text, MAX_ATTRIBUTE_VALUE_BYTES)
    )


def _attributes(
    attributes: Mapping[str, Any] | None,
    limit: int,
    extra: Mapping[str, str] | None = None,
    agent: bool = False,
) -> trace_v2.Span.Attributes:
    """Build a Cloud Trace attribute map.

    ``extra`` entries follow ``attributes`` and count against ``limit``.
    Only the agent attribute is added on top of it.
    """
    attribute_map: dict[str, trace_v2.AttributeValue] = {}
    dropped = 0
    for key, value in chain((attributes or {}).items(), (extra or {}).items()):
        key = ATTRIBUTE_MAPPING.get(key, key)
        converted = attribute_value(value)
        if (
            converted is None
            or len(key.encode("utf-8")) > MAX_ATTRIBUTE_KEY_BYTES
            or len(attribute_map) >= limit
        ):
            dropped += 1
            continue
        attribute_map[key] = converted

    if agent:
        attribute_map[AGENT_ATTRIBUTE] = trace_v2.AttributeValue(
            string_value=truncatable_string(AGENT, MAX_ATTRIBUTE_VALUE_BYTES)
        )

    dropped += getattr(attributes, "dropped", 0) or 0
    return trace_v2.Span.Attributes(
        attribute_map=attribute_map, dropped_attributes_count=dropped
    )


def resource_attributes(resource: GcpResource | None) -> dict[str, str]:
    """Monitored-resource labels as ``g.co/r/{type}/{label}`` span attributes."""
    if resource is None:
        return {}
    return {
        f"g.co/r/{resource.type}/{label}": value
        for label, value in resource.labels.items()
    }


class SpanTranslator:
    """Builds Cloud Trace spans from finished OpenTelemetry spans.

    Args:
        project_id: Google Cloud project receiving the spans.
    """

    def __init__(self, project_id: str) -> None:
        self._project_id = project_id

    def span_name(self, trace_id: int, span_id: int) -> str:
        return (
            f"projects/{self._project_id}/traces/{format_trace_id(trace_id)}"
            f"/spans/{format_span_id(span_id)}"
        )

    def translate(
        self, span: ReadableSpan, resource: GcpResource | None = None
    ) -> trace_v2.Span:
        """Translate one span.

        Args:
            span: Finished span from the SDK.
            resource: Mapped resource of the span, attached as attributes.

        Returns:
            The Cloud Trace span.

        Raises:
            TranslationError: If the span context is invalid or the span
                has not ended.
        """
        context = span.get_span_context()
        if context is None or not context.is_valid:
            raise TranslationError(f"span '{span.name}' has an invalid span context")
        if span.start_time is None or span.end_time is None:
            raise TranslationError(f"span '{span.name}' has not ended")

        kwargs: dict[str, Any] = {
            "name": self.span_name(context.trace_id, context.span_id),
            "span_id": format_span_id(context.span_id),
            "display_name": truncatable_string(span.name, MAX_DISPLAY_NAME_BYTES),
            "start_time": timestamp_from_nanos(span.start_time),
            "end_time": timestamp_from_nanos(span.end_time),
            "attributes": _attributes(
                span.attributes,
                MAX_SPAN_ATTRIBUTES,
                resource_attributes(resource),
                agent=True,
            ),
            "time_events": _time_events(span.events),
            "links": _links(span.links),
            "span_kind": _SPAN_KIND.get(
                span.kind, trace_v2.Span.SpanKind.SPAN_KIND_UNSPECIFIED
            ),
        }
        if span.parent is not None and span.parent.is_valid:
            kwargs["parent_span_id"] = format_span_id(span.parent.span_id)

        status = _status(span)
        if status is not None:
            kwargs["status"] = status

        return trace_v2.Span(**kwargs)


def _status(span: ReadableSpan) -> status_pb2.Status | None:
    if span.status.status_code is StatusCode.UNSET:
        return None
    if span.status.status_code is StatusCode.OK:
        return status_pb2.Status(code=code_pb2.OK)
    return status_pb2.Status(
        code=code_pb2.UNKNOWN, message=span.status.description or ""
    )


def _time_events(events: Sequence[Event]) -> trace_v2.Span.TimeEvents:
    time_event = [
        trace_v2.Span.TimeEvent(
            time=timestamp_from_nanos(event.timestamp),
            annotation=trace_v2.Span.TimeEvent.Annotation(
                description=truncatable_string(event.name, MAX_ATTRIBUTE_VALUE_BYTES),
                attributes=_attributes(event.attributes, MAX_EVENT_ATTRIBUTES),
            ),
        )
        for event in list(events)[:MAX_ANNOTATIONS]
    ]
    return trace_v2.Span.TimeEvents(
        time_event=time_event,
        dropped_annotations_count=max(len(events) - MAX_ANNOTATIONS, 0),
    )


def _links(links: Sequence[Link]) -> trace_v2.Span.Links:
    link = [
        trace_v2.Span.Link(
            trace_id=format_trace_id(item.context.trace_id),
            span_id=format_span_id(item.context.span_id),
            type=trace_v2.Span.Link.Type.TYPE_UNSPECIFIED,
            attributes=_attributes(item.attributes, MAX_LINK_ATTRIBUTES),
        )
        for item in list(links)[:MAX_LINKS]
    ]
    return trace_v2.Span.Links(
        link=link, dropped_links_count=max(len(links) - MAX_LINKS, 0)
    )
