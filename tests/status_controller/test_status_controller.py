"""Tests for the ClusterOperator status controller."""

from typing import Any

import pytest

from snapshot_operator.cluster import InMemoryCluster
from snapshot_operator.conditions import (
    OPERATOR_ID,
    update_condition_fn,
    update_operator_status,
)
from snapshot_operator.exceptions import ConflictError, TransientError
from snapshot_operator.manifest import (
    ClusterOperatorStatus,
    ConditionStatus,
    NamedResource,
    ObjectReference,
    OperatorCondition,
)
from snapshot_operator.retry import Backoff
from snapshot_operator.status_controller import (
    StatusController,
    StatusControllerConfig,
    VersionGetter,
    default_related_objects,
)

from ..objects import make_operator

CLUSTER_OPERATOR_ID = NamedResource("ClusterOperator", None, "csi-snapshot-controller")
REQUIRED = ("CSISnapshotControllerAvailable", "CSISnapshotWebhookControllerAvailable")
TARGETS = {"operator": "4.16.0", "csi-snapshot-controller": "4.16.0"}
FAST_RETRY = Backoff(steps=5, duration=0.001)
NAMESPACE = "openshift-cluster-storage-operator"


class ConflictingCluster(InMemoryCluster):
    """Cluster where another writer updates the ClusterOperator first."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.attempts = 0

    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        if obj["kind"] != "ClusterOperator":
            return await super().update_status(obj)
        self.attempts += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            # A racing writer adds its own field to the status
            current = await self.get(CLUSTER_OPERATOR_ID)
            current["status"] = {
                **(current.get("status") or {}),
                "extension": {"writer": self.attempts},
            }
            await super().update_status(current)
            raise ConflictError(
                "ClusterOperator/csi-snapshot-controller",
                obj["metadata"].get("resourceVersion"),
                "newer",
            )
        return await super().update_status(obj)


def make_controller(
    cluster: InMemoryCluster, versions: VersionGetter | None = None
) -> StatusController:
    return StatusController(
        cluster,
        versions or VersionGetter(),
        StatusControllerConfig(
            required_available=REQUIRED, target_versions=TARGETS, backoff=FAST_RETRY
        ),
    )


async def set_conditions(
    cluster: InMemoryCluster, *conditions: OperatorCondition
) -> None:
    await update_operator_status(cluster, *(update_condition_fn(c) for c in conditions))


def available(name: str, status: ConditionStatus) -> OperatorCondition:
    return OperatorCondition(type=f"{name}Available", status=status, reason="Test")


def progressing(name: str, status: ConditionStatus) -> OperatorCondition:
    return OperatorCondition(type=f"{name}Progressing", status=status, reason="Test")


async def published(cluster: InMemoryCluster) -> ClusterOperatorStatus:
    return ClusterOperatorStatus.parse_doc(await cluster.get(CLUSTER_OPERATOR_ID))


def statuses(status: ClusterOperatorStatus) -> dict[str, ConditionStatus]:
    return {c.type: c.status for c in status.conditions}


async def test_creates_cluster_operator(cluster: InMemoryCluster) -> None:
    """Test the ClusterOperator is created with related objects."""
    await cluster.create(make_operator())
    await make_controller(cluster).sync("key")

    status = await published(cluster)
    assert status.related_objects == [
        ObjectReference(resource="namespaces", name=NAMESPACE),
        ObjectReference(
            group="operator.openshift.io",
            resource="csisnapshotcontrollers",
            name="cluster",
        ),
    ]
    assert statuses(status) == {
        "Available": ConditionStatus.FALSE,
        "Progressing": ConditionStatus.FALSE,
        "Degraded": ConditionStatus.FALSE,
        "Upgradeable": ConditionStatus.TRUE,
    }
    assert not status.versions


def test_related_objects_with_separate_namespaces() -> None:
    refs = default_related_objects("operator-ns", "operand-ns")
    assert [ref.name for ref in refs] == ["operator-ns", "operand-ns", "cluster"]


async def test_available(cluster: InMemoryCluster) -> None:
    """Test the operator is Available once both Deployments are."""
    await cluster.create(make_operator())
    await set_conditions(
        cluster,
        available("CSISnapshotController", ConditionStatus.TRUE),
        available("CSISnapshotWebhookController", ConditionStatus.TRUE),
    )
    await make_controller(cluster).sync("key")
    assert statuses(await published(cluster))["Available"] == ConditionStatus.TRUE


async def test_one_operand_never_available(cluster: InMemoryCluster) -> None:
    """Test that an operand stuck in rollout keeps the operator progressing."""
    await cluster.create(make_operator())
    controller = make_controller(cluster)
    await set_conditions(
        cluster,
        available("CSISnapshotController", ConditionStatus.TRUE),
        progressing("CSISnapshotController", ConditionStatus.FALSE),
        available("CSISnapshotWebhookController", ConditionStatus.FALSE),
        progressing("CSISnapshotWebhookController", ConditionStatus.TRUE),
    )
    for _ in range(5):
        await controller.sync("key")
        # Unrelated contributors changing must not flip Available
        await set_conditions(
            cluster,
            OperatorCondition(
                type="ConditionControllerDegraded", status=ConditionStatus.FALSE
            ),
        )
        status = statuses(await published(cluster))
        assert status["Available"] == ConditionStatus.FALSE
        assert status["Progressing"] == ConditionStatus.TRUE


async def test_degraded(cluster: InMemoryCluster) -> None:
    """Test that one degraded controller degrades the operator."""
    await cluster.create(make_operator())
    await set_conditions(
        cluster,
        OperatorCondition(
            type="CSISnapshotStaticResourceControllerDegraded",
            status=ConditionStatus.TRUE,
            reason="SyncError",
            message="apply failed",
        ),
        OperatorCondition(
            type="CSISnapshotControllerDegraded", status=ConditionStatus.FALSE
        ),
    )
    await make_controller(cluster).sync("key")

    status = await published(cluster)
    degraded = next(c for c in status.conditions if c.type == "Degraded")
    assert degraded.status == ConditionStatus.TRUE
    assert degraded.reason == "CSISnapshotStaticResourceController_SyncError"
    assert (
        degraded.message == "CSISnapshotStaticResourceControllerDegraded: apply failed"
    )


async def test_unmanaged(cluster: InMemoryCluster) -> None:
    """Test that every condition is Unknown while unmanaged."""
    await cluster.create(make_operator({"managementState": "Unmanaged"}))
    await set_conditions(
        cluster, available("CSISnapshotController", ConditionStatus.TRUE)
    )
    await make_controller(cluster).sync("key")

    status = await published(cluster)
    assert {c.type: (c.status, c.reason) for c in status.conditions} == {
        "Available": (ConditionStatus.UNKNOWN, "Unmanaged"),
        "Progressing": (ConditionStatus.UNKNOWN, "Unmanaged"),
        "Degraded": (ConditionStatus.UNKNOWN, "Unmanaged"),
        "Upgradeable": (ConditionStatus.UNKNOWN, "Unmanaged"),
    }


async def test_versions_never_regress(cluster: InMemoryCluster) -> None:
    """Test that a reported target version survives a stale observation."""
    await cluster.create(make_operator())
    versions = VersionGetter()
    controller = make_controller(cluster, versions)

    versions.set_version("operator", "4.16.0")
    await controller.sync("key")
    assert (await published(cluster)).version_map() == {"operator": "4.16.0"}

    versions.set_version("operator", "4.15.0")
    for _ in range(3):
        await controller.sync("key")
        assert (await published(cluster)).version_map() == {"operator": "4.16.0"}


async def test_unchanged_status_is_not_written(cluster: InMemoryCluster) -> None:
    """Test that a second sync with the same inputs does not write."""
    await cluster.create(make_operator())
    controller = make_controller(cluster)
    await controller.sync("key")
    version = cluster.resource_version
    await controller.sync("key")
    assert cluster.resource_version == version


async def test_conflicts_twice_then_succeeds() -> None:
    """Test that the write is retried from a fresh read after conflicts."""
    cluster = ConflictingCluster(conflicts=2)
    await cluster.create(make_operator())
    await set_conditions(
        cluster,
        available("CSISnapshotController", ConditionStatus.TRUE),
        available("CSISnapshotWebhookController", ConditionStatus.TRUE),
    )
    versions = VersionGetter()
    versions.set_version("operator", "4.16.0")

    await make_controller(cluster, versions).sync("key")
    assert cluster.attempts == 3

    obj = await cluster.get(CLUSTER_OPERATOR_ID)
    # Both the racing writer and the aggregated result are present
    assert obj["status"]["extension"] == {"writer": 2}
    status = ClusterOperatorStatus.parse_doc(obj)
    assert statuses(status)["Available"] == ConditionStatus.TRUE
    assert status.version_map() == {"operator": "4.16.0"}
    assert len(status.related_objects) == 2


async def test_conflicts_exhaust_retries() -> None:
    """Test that a persistent conflict is reported as a TransientError."""
    cluster = ConflictingCluster(conflicts=100)
    await cluster.create(make_operator())
    with pytest.raises(TransientError):
        await make_controller(cluster).sync("key")
    assert cluster.attempts == 5
