"""Tests for the typed objects of the operator."""

import pytest
import yaml

from snapshot_operator.exceptions import OperatorException
from snapshot_operator.manifest import (
    ClusterOperatorStatus,
    ConditionStatus,
    NamedResource,
    OperatorSpec,
    OperatorStatus,
    resource_id,
)


def test_resource_id() -> None:
    rid = resource_id(
        {"kind": "Deployment", "metadata": {"name": "example", "namespace": "ns"}}
    )
    assert rid == NamedResource("Deployment", "ns", "example")
    assert str(rid) == "Deployment/ns/example"
    assert str(NamedResource("Node", None, "master-0")) == "Node/master-0"


@pytest.mark.parametrize(
    "doc",
    [
        {"metadata": {"name": "example"}},
        {"kind": "Node"},
        {"kind": "Node", "metadata": {}},
    ],
)
def test_invalid_resource_id(doc: dict) -> None:
    with pytest.raises(OperatorException):
        resource_id(doc)


def test_parse_operator() -> None:
    """Test parsing the spec and status of the operator custom resource."""
    doc = {
        "spec": {"managementState": "Unmanaged", "logLevel": "Debug"},
        "status": {
            "conditions": [
                {
                    "type": "CSISnapshotControllerAvailable",
                    "status": "True",
                    "lastTransitionTime": "2024-01-01T00:00:00Z",
                }
            ]
        },
    }
    spec = OperatorSpec.parse_doc(doc)
    assert spec.management_state == "Unmanaged"
    assert spec.log_level == "Debug"
    assert spec.operator_log_level is None

    status = OperatorStatus.parse_doc(doc)
    assert status.conditions[0].status == ConditionStatus.TRUE
    assert status.to_dict() == doc["status"]


def test_parse_empty_operator() -> None:
    assert OperatorSpec.parse_doc({}).management_state == "Managed"
    assert OperatorStatus.parse_doc({"status": None}).conditions == []


def test_cluster_operator_status() -> None:
    """Test serializing the ClusterOperator status with aliases."""
    status = ClusterOperatorStatus.from_dict(
        {
            "versions": [{"name": "operator", "version": "4.16.0"}],
            "relatedObjects": [{"resource": "namespaces", "name": "example"}],
        }
    )
    assert status.version_map() == {"operator": "4.16.0"}
    assert status.to_dict() == {
        "conditions": [],
        "versions": [{"name": "operator", "version": "4.16.0"}],
        "relatedObjects": [
            {"resource": "namespaces", "name": "example", "group": ""}
        ],
    }


def test_yaml_round_trip() -> None:
    """Test the YAML form uses the kubernetes field names."""
    spec = OperatorSpec.parse_yaml("managementState: Removed\nlogLevel: Trace\n")
    assert spec == OperatorSpec(management_state="Removed", log_level="Trace")
    assert yaml.safe_load(spec.yaml()) == {
        "managementState": "Removed",
        "logLevel": "Trace",
    }
