"""Tests for the in memory cluster."""

from typing import Any

import pytest

from snapshot_operator.cluster import ClusterEvent, InMemoryCluster
from snapshot_operator.exceptions import (
    AlreadyExistsError,
    ConflictError,
    ObjectNotFoundError,
)
from snapshot_operator.manifest import NamedResource

from ..objects import make_node

CONFIG_MAP_ID = NamedResource("ConfigMap", "ns", "settings")


def make_config_map(data: dict[str, str] | None = None) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "settings", "namespace": "ns"},
        "data": data or {"key": "value"},
    }


async def test_create_and_get(cluster: InMemoryCluster) -> None:
    """Test creating and reading back an object."""
    created = await cluster.create(make_config_map())
    assert created["metadata"]["resourceVersion"] == "1"
    assert created["metadata"]["generation"] == 1

    obj = await cluster.get(CONFIG_MAP_ID)
    assert obj == created

    with pytest.raises(AlreadyExistsError):
        await cluster.create(make_config_map())


async def test_get_missing(cluster: InMemoryCluster) -> None:
    """Test reading an object that does not exist."""
    with pytest.raises(ObjectNotFoundError):
        await cluster.get(CONFIG_MAP_ID)


async def test_returned_objects_are_copies(cluster: InMemoryCluster) -> None:
    """Test that mutating a returned object does not change the cluster."""
    created = await cluster.create(make_config_map())
    created["data"]["key"] = "changed"
    obj = await cluster.get(CONFIG_MAP_ID)
    assert obj["data"] == {"key": "value"}


async def test_update_with_stale_version(cluster: InMemoryCluster) -> None:
    """Test that an update based on a stale read is rejected."""
    await cluster.create(make_config_map())
    first = await cluster.get(CONFIG_MAP_ID)
    second = await cluster.get(CONFIG_MAP_ID)

    first["data"] = {"key": "first"}
    updated = await cluster.update(first)
    assert updated["metadata"]["generation"] == 2

    second["data"] = {"key": "second"}
    with pytest.raises(ConflictError, match="ConfigMap/ns/settings"):
        await cluster.update(second)

    obj = await cluster.get(CONFIG_MAP_ID)
    assert obj["data"] == {"key": "first"}


async def test_update_status_keeps_spec(cluster: InMemoryCluster) -> None:
    """Test that a status update only writes the status."""
    created = await cluster.create(make_config_map())
    created["data"] = {"key": "ignored"}
    created["status"] = {"ready": True}
    updated = await cluster.update_status(created)
    assert updated["data"] == {"key": "value"}
    assert updated["status"] == {"ready": True}
    assert updated["metadata"]["generation"] == 1


async def test_apply(cluster: InMemoryCluster) -> None:
    """Test that apply creates, then updates without a version check."""
    applied = await cluster.apply(make_config_map())
    assert applied["metadata"]["generation"] == 1
    created = await cluster.get(CONFIG_MAP_ID)
    created["status"] = {"ready": True}
    await cluster.update_status(created)

    stale = make_config_map({"key": "new"})
    stale["metadata"]["resourceVersion"] = "1"
    applied = await cluster.apply(stale)
    assert applied["data"] == {"key": "new"}
    assert applied["metadata"]["generation"] == 2
    assert applied["status"] == {"ready": True}


async def test_unchanged_write_is_skipped(cluster: InMemoryCluster) -> None:
    """Test that writing the same content does not bump the version."""
    events: list[ClusterEvent] = []
    cluster.add_listener("ConfigMap", lambda event, obj: events.append(event))

    first = await cluster.apply(make_config_map())
    second = await cluster.apply(make_config_map())
    assert first["metadata"]["resourceVersion"] == second["metadata"]["resourceVersion"]
    assert events == [ClusterEvent.ADDED]
    assert cluster.resource_version == 1


async def test_delete(cluster: InMemoryCluster) -> None:
    """Test deleting an object notifies listeners once."""
    events: list[tuple[ClusterEvent, str]] = []
    cluster.add_listener(
        "ConfigMap", lambda event, obj: events.append((event, obj["metadata"]["name"]))
    )
    await cluster.create(make_config_map())
    assert await cluster.delete(CONFIG_MAP_ID)
    assert not await cluster.delete(CONFIG_MAP_ID)
    assert events == [
        (ClusterEvent.ADDED, "settings"),
        (ClusterEvent.DELETED, "settings"),
    ]


async def test_remove_listener(cluster: InMemoryCluster) -> None:
    """Test that a removed listener is no longer called."""
    events: list[ClusterEvent] = []
    remove = cluster.add_listener("ConfigMap", lambda event, obj: events.append(event))
    await cluster.create(make_config_map())
    remove()
    await cluster.delete(CONFIG_MAP_ID)
    assert events == [ClusterEvent.ADDED]


async def test_failing_listener(cluster: InMemoryCluster) -> None:
    """Test that a failing listener does not fail the write."""

    def fail(event: ClusterEvent, obj: dict[str, Any]) -> None:
        raise ValueError("boom")

    cluster.add_listener("ConfigMap", fail)
    await cluster.create(make_config_map())
    assert await cluster.get(CONFIG_MAP_ID)


async def test_list_objects(cluster: InMemoryCluster) -> None:
    """Test listing objects by kind, namespace and labels."""
    await cluster.create(make_node("node-b", {"role": "worker"}))
    await cluster.create(make_node("node-a", {"role": "master"}))
    await cluster.create(make_config_map())

    nodes = await cluster.list_objects("Node")
    assert [n["metadata"]["name"] for n in nodes] == ["node-a", "node-b"]

    workers = await cluster.list_objects("Node", label_selector={"role": "worker"})
    assert [n["metadata"]["name"] for n in workers] == ["node-b"]

    assert len(await cluster.list_objects("ConfigMap", namespace="ns")) == 1
    assert not await cluster.list_objects("ConfigMap", namespace="other")
