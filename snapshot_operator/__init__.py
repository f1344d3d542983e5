"""Operator reconciling the CSI snapshot controller and its webhook.

The operator keeps the snapshot controller and validation webhook Deployments,
the snapshot CustomResourceDefinitions and the topology dependent pod
disruption budgets in line with the `CSISnapshotController` custom resource,
and publishes the aggregated state in the `csi-snapshot-controller`
ClusterOperator.
"""

__all__ = [
    "cluster",
    "config",
    "exceptions",
    "manifest",
    "starter",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
