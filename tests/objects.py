"""Builders for the cluster objects used across the tests."""

from typing import Any

from snapshot_operator.manifest import (
    CLUSTER_NAME,
    INFRASTRUCTURE_KIND,
    NODE_KIND,
    OPERATOR_KIND,
)

MASTER_LABELS = {"node-role.kubernetes.io/master": ""}
WORKER_LABELS = {"node-role.kubernetes.io/worker": ""}


def make_operator(spec: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return the operator custom resource."""
    return {
        "apiVersion": "operator.openshift.io/v1",
        "kind": OPERATOR_KIND,
        "metadata": {"name": CLUSTER_NAME},
        "spec": {"managementState": "Managed", **(spec or {})},
    }


def make_infrastructure(topology: str | None) -> dict[str, Any]:
    """Return the Infrastructure object reporting the control plane topology."""
    status = {"controlPlaneTopology": topology} if topology else {}
    return {
        "apiVersion": "config.openshift.io/v1",
        "kind": INFRASTRUCTURE_KIND,
        "metadata": {"name": CLUSTER_NAME},
        "status": status,
    }


def make_node(name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
    """Return a Node with the given labels."""
    return {
        "apiVersion": "v1",
        "kind": NODE_KIND,
        "metadata": {"name": name, "labels": dict(labels or {})},
    }
