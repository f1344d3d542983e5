"""Reconcilers for the operand Deployments and their manifest hooks."""

from .controller import (
    DeploymentController,
    DeploymentControllerConfig,
    deployment_conditions,
)
from .hooks import (
    DeploymentHook,
    ManifestHook,
    ManifestPipeline,
    control_plane_topology_hook,
    log_level_to_verbosity,
    replace_placeholders_hook,
    replicas_hook,
)
from .rollout import RolloutTracker

__all__ = [
    "DeploymentController",
    "DeploymentControllerConfig",
    "DeploymentHook",
    "ManifestHook",
    "ManifestPipeline",
    "RolloutTracker",
    "control_plane_topology_hook",
    "deployment_conditions",
    "log_level_to_verbosity",
    "replace_placeholders_hook",
    "replicas_hook",
]
