"""Unit tests for OpenTelemetry resource to monitored resource mapping."""

from __future__ import annotations

import pytest
from opentelemetry.sdk.resources import Resource

from gcpotel.resource_mapping import (
    AttributeMapping,
    GcpResource,
    map_resource,
    to_monitored_resource,
)


@pytest.mark.unit
class TestPlatformTables:
    """Known cloud.platform values select their own label table."""

    def test_gce_instance(self) -> None:
        """
        GIVEN a Compute Engine resource
        WHEN it is mapped
        THEN the type is gce_instance with zone and instance_id labels
        """
        resource = Resource(
            {
                "cloud.platform": "gcp_compute_engine",
                "cloud.availability_zone": "us-central1-a",
                "host.id": "1234",
            }
        )

        mapped = map_resource(resource)

        assert mapped.type == "gce_instance"
        assert dict(mapped.labels) == {"zone": "us-central1-a", "instance_id": "1234"}

    def test_k8s_container_prefers_zone_over_region(self) -> None:
        """
        GIVEN a GKE resource carrying both zone and region
        WHEN it is mapped
        THEN location comes from the zone (first candidate)
        """
        resource = Resource(
            {
                "cloud.platform": "gcp_kubernetes_engine",
                "cloud.availability_zone": "europe-west1-b",
                "cloud.region": "europe-west1",
                "k8s.cluster.name": "prod",
                "k8s.namespace.name": "default",
                "k8s.pod.name": "web-0",
                "k8s.container.name": "web",
            }
        )

        mapped = map_resource(resource)

        assert mapped.type == "k8s_container"
        assert dict(mapped.labels) == {
            "location": "europe-west1-b",
            "cluster_name": "prod",
            "namespace_name": "default",
            "pod_name": "web-0",
            "container_name": "web",
        }

    def test_k8s_container_falls_back_to_region(self) -> None:
        """
        GIVEN a GKE resource with only the second location candidate present
        WHEN it is mapped
        THEN location equals that attribute's value
        """
        resource = Resource(
            {"cloud.platform": "gcp_kubernetes_engine", "cloud.region": "asia-east1"}
        )

        assert map_resource(resource).labels["location"] == "asia-east1"

    def test_aws_ec2_instance(self) -> None:
        resource = Resource(
            {
                "cloud.platform": "aws_ec2",
                "host.id": "i-abc",
                "cloud.availability_zone": "us-east-1a",
                "cloud.account.id": "123456789012",
            }
        )

        mapped = map_resource(resource)

        assert mapped.type == "aws_ec2_instance"
        assert dict(mapped.labels) == {
            "instance_id": "i-abc",
            "region": "us-east-1a",
            "aws_account": "123456789012",
        }

    def test_gae_instance(self) -> None:
        resource = Resource(
            {
                "cloud.platform": "gcp_app_engine",
                "faas.name": "default",
                "faas.version": "v1",
                "faas.id": "instance-1",
                "cloud.region": "us-central1",
            }
        )

        mapped = map_resource(resource)

        assert mapped.type == "gae_instance"
        assert dict(mapped.labels) == {
            "module_id": "default",
            "version_id": "v1",
            "instance_id": "instance-1",
            "location": "us-central1",
        }

    def test_missing_attributes_omit_labels_without_fallback(self) -> None:
        """
        GIVEN a Compute Engine resource with no zone or host id
        WHEN it is mapped
        THEN no labels are produced and no error is raised
        """
        resource = Resource({"cloud.platform": "gcp_compute_engine"})

        mapped = map_resource(resource)

        assert mapped.type == "gce_instance"
        assert dict(mapped.labels) == {}


@pytest.mark.unit
class TestGenericTaskFallback:
    """Resources without a known platform map to generic_task."""

    def test_no_platform_uses_fallback_literals(self) -> None:
        """
        GIVEN a resource with only service.name
        WHEN it is mapped
        THEN generic_task is used with fallback literals for missing labels
        """
        mapped = map_resource(Resource({"service.name": "checkout"}))

        assert mapped.type == "generic_task"
        assert dict(mapped.labels) == {
            "location": "global",
            "namespace": "",
            "job": "checkout",
            "task_id": "",
        }

    def test_unknown_platform_uses_generic_task(self) -> None:
        resource = Resource(
            {
                "cloud.platform": "azure_vm",
                "cloud.region": "westeurope",
                "service.namespace": "shop",
                "service.name": "cart",
                "service.instance.id": "cart-7",
            }
        )

        mapped = map_resource(resource)

        assert mapped.type == "generic_task"
        assert dict(mapped.labels) == {
            "location": "westeurope",
            "namespace": "shop",
            "job": "cart",
            "task_id": "cart-7",
        }

    def test_task_id_falls_back_to_faas_id(self) -> None:
        mapped = map_resource(Resource({"faas.id": "fn-1"}))

        assert mapped.labels["task_id"] == "fn-1"


@pytest.mark.unit
class TestAttributeMapping:
    def test_non_string_values_are_stringified(self) -> None:
        mapping = AttributeMapping("instance_id", ("host.id",))

        assert mapping.resolve({"host.id": 42}) == "42"
        assert mapping.resolve({"host.id": True}) == "true"

    def test_first_present_key_wins(self) -> None:
        mapping = AttributeMapping("location", ("a", "b"), "global")

        assert mapping.resolve({"b": "second"}) == "second"
        assert mapping.resolve({"a": "first", "b": "second"}) == "first"
        assert mapping.resolve({}) == "global"

    def test_no_fallback_returns_none(self) -> None:
        assert AttributeMapping("zone", ("a",)).resolve({}) is None


@pytest.mark.unit
class TestGcpResource:
    def test_labels_are_read_only(self) -> None:
        resource = GcpResource("generic_task", {"job": "a"})

        with pytest.raises(TypeError):
            resource.labels["job"] = "b"  # type: ignore[index]

    def test_mapping_is_deterministic(self) -> None:
        resource = Resource({"service.name": "svc", "cloud.region": "r"})

        assert map_resource(resource) == map_resource(resource)

    def test_to_monitored_resource(self) -> None:
        monitored = to_monitored_resource(GcpResource("generic_task", {"job": "a"}))

        assert monitored.type == "generic_task"
        assert dict(monitored.labels) == {"job": "a"}


@pytest.mark.unit
class TestSemanticConventionKeys:
    """Lookup keys match the OpenTelemetry semantic conventions."""

    def test_platform_key_is_cloud_platform(self) -> None:
        """
        GIVEN a resource built with the semantic-convention attribute names
        WHEN it is mapped
        THEN the platform table is chosen from the cloud.platform key
        """
        from opentelemetry.semconv.resource import ResourceAttributes

        from gcpotel import resource_mapping

        resource = Resource(
            {
                ResourceAttributes.CLOUD_PLATFORM: "gcp_kubernetes_engine",
                ResourceAttributes.CLOUD_REGION: "us-east1",
                ResourceAttributes.K8S_CLUSTER_NAME: "prod",
                ResourceAttributes.K8S_POD_NAME: "web-0",
            }
        )

        mapped = map_resource(resource)

        assert resource_mapping.CLOUD_PLATFORM == "cloud.platform"
        assert mapped.type == "k8s_container"
        assert mapped.labels["location"] == "us-east1"
        assert mapped.labels["cluster_name"] == "prod"
        assert mapped.labels["pod_name"] == "web-0"
