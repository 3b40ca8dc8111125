"""Translate OpenTelemetry resources into Google Cloud monitored resources.

Each supported ``cloud.platform`` value selects a static table of
:class:`AttributeMapping` rows. A row names one monitored-resource label and
the OpenTelemetry attribute keys that may supply it, in priority order.
Unknown or missing platforms fall back to the ``generic_task`` table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from google.api.monitored_resource_pb2 import MonitoredResource
from opentelemetry.sdk.resources import Resource
from opentelemetry.semconv.resource import ResourceAttributes

CLOUD_ACCOUNT_ID = ResourceAttributes.CLOUD_ACCOUNT_ID
CLOUD_AVAILABILITY_ZONE = ResourceAttributes.CLOUD_AVAILABILITY_ZONE
CLOUD_PLATFORM = ResourceAttributes.CLOUD_PLATFORM
CLOUD_REGION = ResourceAttributes.CLOUD_REGION
FAAS_NAME = ResourceAttributes.FAAS_NAME
FAAS_VERSION = ResourceAttributes.FAAS_VERSION
HOST_ID = ResourceAttributes.HOST_ID
K8S_CLUSTER_NAME = ResourceAttributes.K8S_CLUSTER_NAME
K8S_CONTAINER_NAME = ResourceAttributes.K8S_CONTAINER_NAME
K8S_NAMESPACE_NAME = ResourceAttributes.K8S_NAMESPACE_NAME
K8S_POD_NAME = ResourceAttributes.K8S_POD_NAME
SERVICE_INSTANCE_ID = ResourceAttributes.SERVICE_INSTANCE_ID
SERVICE_NAME = ResourceAttributes.SERVICE_NAME
SERVICE_NAMESPACE = ResourceAttributes.SERVICE_NAMESPACE
# Dropped from newer semantic conventions, still set by App Engine detectors
FAAS_ID = "faas.id"

GCE_INSTANCE = "gce_instance"
K8S_CONTAINER = "k8s_container"
AWS_EC2_INSTANCE = "aws_ec2_instance"
GAE_INSTANCE = "gae_instance"
GENERIC_TASK = "generic_task"


def attribute_to_label_value(value: Any) -> str:
    """Render an attribute value the way Google Cloud labels expect it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    return str(value)


@dataclass(frozen=True)
class AttributeMapping:
    """One monitored-resource label and where its value comes from.

    Attributes:
        label_name: Label name on the Google Cloud monitored resource.
        otel_keys: OpenTelemetry attribute keys, in priority order.
        fallback_literal: Value used when none of the keys is present.
            ``None`` means the label is omitted instead.
    """

    label_name: str
    otel_keys: tuple[str, ...]
    fallback_literal: str | None = None

    def resolve(self, attributes: Mapping[str, Any]) -> str | None:
        """Return the label value for ``attributes``, or None to omit it."""
        for key in self.otel_keys:
            value = attributes.get(key)
            if value is not None:
                return attribute_to_label_value(value)
        return self.fallback_literal


@dataclass(frozen=True)
class GcpResource:
    """A monitored-resource type plus its resolved labels."""

    type: str
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))


_GCE_INSTANCE_LABELS = (
    AttributeMapping("zone", (CLOUD_AVAILABILITY_ZONE,)),
    AttributeMapping("instance_id", (HOST_ID,)),
)

_K8S_CONTAINER_LABELS = (
    AttributeMapping("location", (CLOUD_AVAILABILITY_ZONE, CLOUD_REGION)),
    AttributeMapping("cluster_name", (K8S_CLUSTER_NAME,)),
    AttributeMapping("namespace_name", (K8S_NAMESPACE_NAME,)),
    AttributeMapping("container_name", (K8S_CONTAINER_NAME,)),
    AttributeMapping("pod_name", (K8S_POD_NAME,)),
)

_AWS_EC2_INSTANCE_LABELS = (
    AttributeMapping("instance_id", (HOST_ID,)),
    AttributeMapping("region", (CLOUD_AVAILABILITY_ZONE,)),
    AttributeMapping("aws_account", (CLOUD_ACCOUNT_ID,)),
)

_GAE_INSTANCE_LABELS = (
    AttributeMapping("module_id", (FAAS_NAME,)),
    AttributeMapping("version_id", (FAAS_VERSION,)),
    AttributeMapping("instance_id", (FAAS_ID,)),
    AttributeMapping("location", (CLOUD_REGION,)),
)

_GENERIC_TASK_LABELS = (
    AttributeMapping("location", (CLOUD_AVAILABILITY_ZONE, CLOUD_REGION), "global"),
    AttributeMapping("namespace", (SERVICE_NAMESPACE,), ""),
    AttributeMapping("job", (SERVICE_NAME,), ""),
    AttributeMapping("task_id", (SERVICE_INSTANCE_ID, FAAS_ID), ""),
)

# cloud.platform value -> (monitored resource type, label rules)
PLATFORM_MAPPINGS: dict[str, tuple[str, tuple[AttributeMapping, ...]]] = {
    "gcp_compute_engine": (GCE_INSTANCE, _GCE_INSTANCE_LABELS),
    "gcp_kubernetes_engine": (K8S_CONTAINER, _K8S_CONTAINER_LABELS),
    "aws_ec2": (AWS_EC2_INSTANCE, _AWS_EC2_INSTANCE_LABELS),
    "gcp_app_engine": (GAE_INSTANCE, _GAE_INSTANCE_LABELS),
}

_FALLBACK_MAPPING = (GENERIC_TASK, _GENERIC_TASK_LABELS)


def map_resource(resource: Resource) -> GcpResource:
    """Convert an OpenTelemetry resource into a Google Cloud resource.

    Missing attributes are never an error: the label takes the row's
    fallback literal, or is left out when the row has none.

    Args:
        resource: Resource attached to the exported telemetry.

    Returns:
        The monitored-resource type and its labels.
    """
    attributes = resource.attributes
    platform = attributes.get(CLOUD_PLATFORM)
    resource_type, mappings = PLATFORM_MAPPINGS.get(platform, _FALLBACK_MAPPING)

    labels: dict[str, str] = {}
    for mapping in mappings:
        value = mapping.resolve(attributes)
        if value is not None:
            labels[mapping.label_name] = value
    return GcpResource(type=resource_type, labels=labels)


def to_monitored_resource(resource: GcpResource) -> MonitoredResource:
    """Build the protobuf form attached to every time series."""
    return MonitoredResource(type=resource.type, labels=dict(resource.labels))
