"""Read-only view of the cluster shape used by hooks and resource selection."""

from dataclasses import dataclass, field
import logging

from .cluster import ClusterClient
from .exceptions import ObjectNotFoundError
from .manifest import (
    CLUSTER_NAME,
    INFRASTRUCTURE_KIND,
    NODE_KIND,
    ControlPlaneTopology,
    NamedResource,
)

__all__ = ["TopologySnapshot", "read_topology"]

_LOGGER = logging.getLogger(__name__)

INFRASTRUCTURE_ID = NamedResource(
    kind=INFRASTRUCTURE_KIND, namespace=None, name=CLUSTER_NAME
)


@dataclass(frozen=True)
class TopologySnapshot:
    """Cluster shape observed at one point in time.

    A snapshot is read once per reconcile and every decision of that reconcile
    is derived from it, so two decisions never see different cluster shapes.
    """

    control_plane_topology: str | None = None
    """The Infrastructure controlPlaneTopology, None if it was not readable."""

    nodes: tuple[dict[str, str], ...] = field(default_factory=tuple)
    """Labels of every node in the cluster."""

    @property
    def node_count(self) -> int:
        """Number of nodes in the cluster."""
        return len(self.nodes)

    @property
    def single_node(self) -> bool | None:
        """Whether this is a single node cluster, None if indeterminate."""
        if not self.control_plane_topology:
            return None
        return self.control_plane_topology == ControlPlaneTopology.SINGLE_REPLICA

    @property
    def external_control_plane(self) -> bool:
        """Whether the control plane runs outside of the cluster."""
        return self.control_plane_topology == ControlPlaneTopology.EXTERNAL

    def count_nodes(self, selector: dict[str, str] | None) -> int:
        """Number of nodes whose labels match every key of the selector."""
        if not selector:
            return self.node_count
        return sum(
            1
            for labels in self.nodes
            if all(labels.get(k) == v for k, v in selector.items())
        )


async def read_topology(client: ClusterClient) -> TopologySnapshot:
    """Read the current cluster shape."""
    control_plane_topology: str | None = None
    try:
        infra = await client.get(INFRASTRUCTURE_ID)
    except ObjectNotFoundError:
        _LOGGER.debug("Infrastructure %s not found", INFRASTRUCTURE_ID)
    else:
        status = infra.get("status") or {}
        if not (control_plane_topology := status.get("controlPlaneTopology")):
            _LOGGER.debug("ControlPlaneTopology was not set")
    nodes = await client.list_objects(NODE_KIND)
    return TopologySnapshot(
        control_plane_topology=control_plane_topology or None,
        nodes=tuple(node["metadata"].get("labels") or {} for node in nodes),
    )
