"""Fixtures shared by every test."""

from typing import Any

import pytest

from snapshot_operator.cluster import InMemoryCluster

from .objects import MASTER_LABELS, make_infrastructure, make_node, make_operator


@pytest.fixture(name="cluster")
def cluster_fixture() -> InMemoryCluster:
    """Empty in memory cluster."""
    return InMemoryCluster()


@pytest.fixture(name="topology")
def topology_fixture() -> str | None:
    """Control plane topology reported by the Infrastructure."""
    return "HighlyAvailable"


@pytest.fixture(name="node_count")
def node_count_fixture() -> int:
    """Number of control plane nodes."""
    return 3


@pytest.fixture(name="operator_spec")
def operator_spec_fixture() -> dict[str, Any]:
    """Spec of the operator custom resource."""
    return {}


@pytest.fixture(name="seeded_cluster")
async def seeded_cluster_fixture(
    cluster: InMemoryCluster,
    topology: str | None,
    node_count: int,
    operator_spec: dict[str, Any],
) -> InMemoryCluster:
    """Cluster with the operator custom resource, Infrastructure and nodes."""
    await cluster.create(make_operator(operator_spec))
    infra = make_infrastructure(topology)
    status = infra.pop("status")
    created = await cluster.create(infra)
    created["status"] = status
    await cluster.update_status(created)
    for i in range(node_count):
        await cluster.create(make_node(f"master-{i}", MASTER_LABELS))
    return cluster
