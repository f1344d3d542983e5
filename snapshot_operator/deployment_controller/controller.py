"""Deployment controller implementation.

This controller keeps one operand Deployment in line with its embedded
template, rendered through a ManifestPipeline.

Key Concepts:
    - Template: The Deployment manifest shipped in the assets directory, with
      `${NAME}` placeholders filled in by the pipeline.
    - Conditions: `<Name>Available` and `<Name>Progressing` are derived from
      the status of the applied Deployment and written to the operator status.
"""

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

import yaml

from snapshot_operator.cluster import ClusterClient, ClusterEvent
from snapshot_operator.conditions import (
    AVAILABLE,
    OPERATOR_ID,
    PROGRESSING,
    update_condition_fn,
    update_operator_status,
)
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.exceptions import AssetException
from snapshot_operator.factory import Controller
from snapshot_operator.management import ManagementGate
from snapshot_operator.manifest import (
    DEPLOYMENT_KIND,
    INFRASTRUCTURE_KIND,
    NODE_KIND,
    OPERATOR_KIND,
    ConditionStatus,
    NamedResource,
    OperatorCondition,
    OperatorSpec,
    resource_id,
)
from snapshot_operator.topology import read_topology

from .hooks import ManifestPipeline
from .rollout import RolloutTracker

__all__ = [
    "DeploymentController",
    "DeploymentControllerConfig",
    "deployment_conditions",
]

_LOGGER = logging.getLogger(__name__)

DEPLOYING = "Deploying"
AS_EXPECTED = "AsExpected"


@dataclass
class DeploymentControllerConfig:
    """Configuration for a DeploymentController."""

    name: str
    """Name of the controller and prefix of its conditions."""

    template: bytes
    """Raw Deployment template."""

    resync_seconds: float = DEFAULT_RESYNC_SECONDS


def _template_id(template: bytes) -> NamedResource:
    try:
        doc = yaml.safe_load(template)
    except yaml.YAMLError as err:
        raise AssetException(f"Invalid Deployment template: {err}") from err
    if not isinstance(doc, dict) or doc.get("kind") != DEPLOYMENT_KIND:
        raise AssetException("Deployment template is not a Deployment")
    return resource_id(doc)


def deployment_conditions(
    name: str, deployment: dict[str, Any]
) -> tuple[OperatorCondition, OperatorCondition]:
    """Return the Available and Progressing conditions for a Deployment."""
    metadata = deployment.get("metadata") or {}
    spec = deployment.get("spec") or {}
    status = deployment.get("status") or {}
    desired = spec.get("replicas", 1)
    available_replicas = status.get("availableReplicas", 0)
    updated_replicas = status.get("updatedReplicas", 0)

    if available_replicas > 0:
        available = OperatorCondition(
            type=f"{name}{AVAILABLE}",
            status=ConditionStatus.TRUE,
            reason=AS_EXPECTED,
            message="Deployment is available",
        )
    else:
        available = OperatorCondition(
            type=f"{name}{AVAILABLE}",
            status=ConditionStatus.FALSE,
            reason=DEPLOYING,
            message="Waiting for Deployment to deploy pods",
        )

    if status.get("observedGeneration") != metadata.get("generation"):
        progressing = OperatorCondition(
            type=f"{name}{PROGRESSING}",
            status=ConditionStatus.TRUE,
            reason=DEPLOYING,
            message="Waiting for Deployment to act on changes",
        )
    elif updated_replicas < desired or available_replicas < desired:
        progressing = OperatorCondition(
            type=f"{name}{PROGRESSING}",
            status=ConditionStatus.TRUE,
            reason=DEPLOYING,
            message="Waiting for Deployment to deploy pods",
        )
    else:
        progressing = OperatorCondition(
            type=f"{name}{PROGRESSING}",
            status=ConditionStatus.FALSE,
            reason=AS_EXPECTED,
        )
    return available, progressing


class DeploymentController:
    """Controller for reconciling one operand Deployment.

    The Deployment is re-rendered whenever the operator spec, the nodes or
    the Infrastructure change, and whenever the Deployment itself changes.
    """

    def __init__(
        self,
        client: ClusterClient,
        pipeline: ManifestPipeline,
        gate: ManagementGate,
        config: DeploymentControllerConfig,
        rollouts: RolloutTracker | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            client: The cluster holding the operator spec and the Deployment
            pipeline: Hooks rendering the template into a Deployment
            gate: Decides whether the Deployment may be mutated
            config: The configuration for the controller
            rollouts: Receives the rollouts this controller saw complete

        Raises:
            AssetException: If the template is not a Deployment.
        """
        self.name = config.name
        self._client = client
        self._pipeline = pipeline
        self._gate = gate
        self._rollouts = rollouts if rollouts is not None else RolloutTracker()
        self._template = config.template
        self.deployment_id = _template_id(config.template)
        self._controller = Controller(
            config.name,
            self.sync,
            client,
            watch_kinds=(
                OPERATOR_KIND,
                DEPLOYMENT_KIND,
                NODE_KIND,
                INFRASTRUCTURE_KIND,
            ),
            key_func=self._key_func,
            initial_keys=(self.deployment_id.namespaced_name,),
            resync_seconds=config.resync_seconds,
            report_degraded=True,
        )

    def _key_func(self, event: ClusterEvent, obj: dict[str, Any]) -> str | None:
        if obj.get("kind") != DEPLOYMENT_KIND:
            return self.deployment_id.namespaced_name
        if resource_id(obj) != self.deployment_id:
            return None
        return self.deployment_id.namespaced_name

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        await self._controller.run(stop, workers)

    async def sync(self, key: str) -> None:
        """Reconcile the Deployment with the current spec and topology."""
        spec = OperatorSpec.parse_doc(await self._client.get(OPERATOR_ID))
        if self._gate.is_removing(spec.management_state):
            self._rollouts.reset(self.name)
            if await self._client.delete(self.deployment_id):
                _LOGGER.info("%s: deleted %s", self.name, self.deployment_id)
            return
        if not self._gate.allows_sync(spec.management_state):
            _LOGGER.debug(
                "%s: management state %s, not syncing %s",
                self.name,
                spec.management_state,
                self.deployment_id,
            )
            return

        topology = await read_topology(self._client)
        deployment = self._pipeline.apply(spec, topology, self._template)
        applied = await self._client.apply(deployment)
        generation = applied["metadata"].get("generation", 0)
        _LOGGER.debug(
            "%s: applied %s at generation %s", self.name, self.deployment_id, generation
        )

        available, progressing = deployment_conditions(self.name, applied)
        await update_operator_status(
            self._client,
            update_condition_fn(available),
            update_condition_fn(progressing),
        )
        if (
            available.status == ConditionStatus.TRUE
            and progressing.status == ConditionStatus.FALSE
        ):
            self._rollouts.confirm(self.name, generation)
        else:
            self._rollouts.reset(self.name)
