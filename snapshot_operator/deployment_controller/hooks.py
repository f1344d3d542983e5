"""Manifest hooks turning a Deployment template into a concrete Deployment.

A pipeline runs two kinds of hooks in order:

    - Manifest hooks rewrite the raw template bytes, e.g. replacing the
      `${OPERAND_IMAGE}` and `${LOG_LEVEL}` placeholders.
    - Deployment hooks rewrite the parsed Deployment using the topology
      snapshot of the current reconcile, e.g. the replica count.

Hooks are pure: they never mutate their inputs and return the same output for
the same inputs. Any hook failure aborts the whole pipeline with a
PipelineError so a partially rendered Deployment is never applied.
"""

from collections.abc import Callable, Mapping, Sequence
import copy
import logging
import re
from typing import Any

import yaml

from snapshot_operator.exceptions import PipelineError
from snapshot_operator.manifest import DEPLOYMENT_KIND, LogLevel, OperatorSpec
from snapshot_operator.topology import TopologySnapshot

__all__ = [
    "ManifestHook",
    "DeploymentHook",
    "ManifestPipeline",
    "log_level_to_verbosity",
    "replace_placeholders_hook",
    "control_plane_topology_hook",
    "replicas_hook",
]

_LOGGER = logging.getLogger(__name__)

ManifestHook = Callable[[OperatorSpec, bytes], bytes]
DeploymentHook = Callable[
    [OperatorSpec, TopologySnapshot, dict[str, Any]], dict[str, Any]
]

LOG_LEVEL_TOKEN = "${LOG_LEVEL}"

# Verbosity passed to the operands (klog -v) for each operator log level.
LOG_LEVEL_VERBOSITY = {
    LogLevel.NORMAL: 2,
    LogLevel.DEBUG: 4,
    LogLevel.TRACE: 6,
    LogLevel.TRACE_ALL: 8,
}

# Tolerations that only make sense when the pods run on control plane nodes.
CONTROL_PLANE_TOLERATION_KEYS = {
    "node-role.kubernetes.io/master",
    "node-role.kubernetes.io/control-plane",
}


def log_level_to_verbosity(log_level: str | None) -> int:
    """Return the operand verbosity for a log level, unknown levels are Normal."""
    if log_level not in LOG_LEVEL_VERBOSITY:
        if log_level:
            _LOGGER.debug("Unknown log level %r, using Normal", log_level)
        return LOG_LEVEL_VERBOSITY[LogLevel.NORMAL]
    return LOG_LEVEL_VERBOSITY[LogLevel(log_level)]


def replace_placeholders_hook(images: Mapping[str, str]) -> ManifestHook:
    """Return a hook replacing image placeholders and the log level.

    Args:
        images: Maps a placeholder name (e.g. `OPERAND_IMAGE`) to the image
            reference it is replaced with.

    Tokens are replaced in a single pass, so a value containing another token
    is never expanded again. Tokens not in the mapping are left untouched.
    """
    image_tokens = {f"${{{name}}}": value for name, value in images.items()}
    tokens = sorted([*image_tokens, LOG_LEVEL_TOKEN], key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(token) for token in tokens))

    def replace_placeholders(spec: OperatorSpec, manifest: bytes) -> bytes:
        values = dict(image_tokens)
        values[LOG_LEVEL_TOKEN] = str(log_level_to_verbosity(spec.log_level))
        content = manifest.decode("utf-8")
        return pattern.sub(lambda m: values[m.group(0)], content).encode("utf-8")

    return replace_placeholders


def _pod_spec(deployment: dict[str, Any]) -> dict[str, Any]:
    try:
        pod_spec = deployment["spec"]["template"]["spec"]
    except (KeyError, TypeError) as err:
        raise PipelineError(
            "deployment", "missing spec.template.spec in Deployment"
        ) from err
    if not isinstance(pod_spec, dict):
        raise PipelineError("deployment", "spec.template.spec is not a mapping")
    return pod_spec


def control_plane_topology_hook(
    spec: OperatorSpec, topology: TopologySnapshot, deployment: dict[str, Any]
) -> dict[str, Any]:
    """Let the pods run on worker nodes when the control plane is external."""
    if not topology.external_control_plane:
        return deployment
    result = copy.deepcopy(deployment)
    pod_spec = _pod_spec(result)
    pod_spec["nodeSelector"] = {}
    if tolerations := pod_spec.get("tolerations"):
        pod_spec["tolerations"] = [
            t for t in tolerations if t.get("key") not in CONTROL_PLANE_TOLERATION_KEYS
        ]
    return result


def replicas_hook(
    spec: OperatorSpec, topology: TopologySnapshot, deployment: dict[str, Any]
) -> dict[str, Any]:
    """Run two replicas when more than one node can host the pods."""
    result = copy.deepcopy(deployment)
    node_selector = _pod_spec(result).get("nodeSelector")
    replicas = 2 if topology.count_nodes(node_selector) > 1 else 1
    result["spec"]["replicas"] = replicas
    return result


def _hook_name(hook: Callable[..., Any]) -> str:
    return getattr(hook, "__name__", repr(hook))


class ManifestPipeline:
    """Ordered manifest and Deployment hooks applied to a template."""

    def __init__(
        self,
        manifest_hooks: Sequence[ManifestHook],
        deployment_hooks: Sequence[DeploymentHook] = (),
    ) -> None:
        """Initialize ManifestPipeline."""
        self._manifest_hooks = tuple(manifest_hooks)
        self._deployment_hooks = tuple(deployment_hooks)

    def render(self, spec: OperatorSpec, template: bytes) -> bytes:
        """Run only the manifest hooks over the template."""
        manifest = template
        for hook in self._manifest_hooks:
            try:
                manifest = hook(spec, manifest)
            except PipelineError:
                raise
            except Exception as err:
                raise PipelineError(_hook_name(hook), str(err)) from err
        return manifest

    def apply(
        self, spec: OperatorSpec, topology: TopologySnapshot, template: bytes
    ) -> dict[str, Any]:
        """Return the Deployment rendered from the template.

        Raises:
            PipelineError: If any hook fails or the template is not a Deployment.
        """
        manifest = self.render(spec, template)
        try:
            deployment = yaml.safe_load(manifest)
        except yaml.YAMLError as err:
            raise PipelineError("parse", f"invalid YAML: {err}") from err
        if (
            not isinstance(deployment, dict)
            or deployment.get("kind") != DEPLOYMENT_KIND
        ):
            raise PipelineError("parse", "template is not a Deployment")
        for hook in self._deployment_hooks:
            try:
                deployment = hook(spec, topology, deployment)
            except PipelineError:
                raise
            except Exception as err:
                raise PipelineError(_hook_name(hook), str(err)) from err
        return deployment
