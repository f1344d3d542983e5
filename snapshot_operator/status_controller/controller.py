"""ClusterOperator status controller implementation.

Publishes the externally visible status of the operator: the union of the
conditions every controller reports on the operator custom resource, the
component versions and the objects related to the operator.

The ClusterOperator is the only object written by more than one party, so it
is always recomputed from the current state of its inputs and written with
a read-modify-write cycle guarded by its resourceVersion.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from typing import Any

from snapshot_operator.cluster import ClusterClient
from snapshot_operator.conditions import OPERATOR_ID, set_condition
from snapshot_operator.config import (
    DEFAULT_RESYNC_SECONDS,
    OPERATOR_NAMESPACE,
    TARGET_NAME,
    TARGET_NAMESPACE,
)
from snapshot_operator.exceptions import ObjectNotFoundError
from snapshot_operator.factory import DEFAULT_KEY, Controller
from snapshot_operator.manifest import (
    CLUSTER_NAME,
    CLUSTER_OPERATOR_KIND,
    OPERATOR_GROUP,
    OPERATOR_KIND,
    OPERATOR_RESOURCE,
    ClusterOperatorStatus,
    ConditionStatus,
    ManagementState,
    NamedResource,
    ObjectReference,
    OperandVersion,
    OperatorCondition,
    OperatorSpec,
    OperatorStatus,
)
from snapshot_operator.retry import DEFAULT_RETRY, Backoff, retry_on_conflict

from .union import CLUSTER_CONDITION_DEFAULTS, union_conditions
from .version import VersionGetter, merge_versions

__all__ = [
    "StatusController",
    "StatusControllerConfig",
    "aggregate",
    "default_related_objects",
]

_LOGGER = logging.getLogger(__name__)

CONTROLLER_NAME = "ClusterOperatorStatusController"
CLUSTER_OPERATOR_API_VERSION = "config.openshift.io/v1"
UNMANAGED_REASON = "Unmanaged"


def default_related_objects(
    operator_namespace: str = OPERATOR_NAMESPACE,
    target_namespace: str = TARGET_NAMESPACE,
) -> list[ObjectReference]:
    """Objects collected when debugging the operator."""
    refs = [
        ObjectReference(resource="namespaces", name=operator_namespace),
        ObjectReference(resource="namespaces", name=target_namespace),
        ObjectReference(
            group=OPERATOR_GROUP, resource=OPERATOR_RESOURCE, name=CLUSTER_NAME
        ),
    ]
    result: list[ObjectReference] = []
    for ref in refs:
        if ref not in result:
            result.append(ref)
    return result


@dataclass
class StatusControllerConfig:
    """Configuration for the StatusController."""

    cluster_operator_name: str = TARGET_NAME
    related_objects: list[ObjectReference] = field(
        default_factory=default_related_objects
    )
    required_available: tuple[str, ...] = ()
    """Condition types that must be True for the operator to be Available."""

    target_versions: dict[str, str] = field(default_factory=dict)
    """Versions this process is rolling out, keyed by component."""

    resync_seconds: float = DEFAULT_RESYNC_SECONDS
    backoff: Backoff = DEFAULT_RETRY


def aggregate(
    published: ClusterOperatorStatus,
    spec: OperatorSpec,
    operator_status: OperatorStatus,
    versions: dict[str, str],
    config: StatusControllerConfig,
) -> ClusterOperatorStatus:
    """Return the ClusterOperator status for the current inputs.

    The result is computed from scratch from its inputs; the published status
    only contributes the lastTransitionTime of unchanged conditions and the
    versions that were reported before.
    """
    if spec.management_state == ManagementState.UNMANAGED:
        new_conditions = [
            OperatorCondition(
                type=condition_type,
                status=ConditionStatus.UNKNOWN,
                reason=UNMANAGED_REASON,
                message="The operator is not managing its operands",
            )
            for condition_type in CLUSTER_CONDITION_DEFAULTS
        ]
    else:
        new_conditions = union_conditions(
            operator_status.conditions, config.required_available
        )

    conditions = [
        OperatorCondition.from_dict(c.to_dict()) for c in published.conditions
    ]
    for condition in new_conditions:
        set_condition(conditions, condition)

    return ClusterOperatorStatus(
        conditions=conditions,
        versions=merge_versions(
            published.version_map(), versions, config.target_versions
        ),
        related_objects=list(config.related_objects),
    )


class StatusController:
    """Controller publishing the aggregated ClusterOperator status."""

    def __init__(
        self,
        client: ClusterClient,
        versions: VersionGetter,
        config: StatusControllerConfig,
    ) -> None:
        """Initialize the controller.

        Args:
            client: The cluster holding the operator and ClusterOperator
            versions: Versions confirmed by the version controller
            config: The configuration for the controller
        """
        self.name = CONTROLLER_NAME
        self._client = client
        self._versions = versions
        self._config = config
        self.cluster_operator_id = NamedResource(
            kind=CLUSTER_OPERATOR_KIND,
            namespace=None,
            name=config.cluster_operator_name,
        )
        self._controller = Controller(
            CONTROLLER_NAME,
            self.sync,
            client,
            watch_kinds=(OPERATOR_KIND, CLUSTER_OPERATOR_KIND),
            resync_seconds=config.resync_seconds,
        )

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        remove = self._versions.add_listener(
            lambda: self._controller.enqueue(DEFAULT_KEY)
        )
        try:
            await self._controller.run(stop, workers)
        finally:
            remove()

    async def _get_or_create(self) -> dict[str, Any]:
        try:
            return await self._client.get(self.cluster_operator_id)
        except ObjectNotFoundError:
            _LOGGER.info("Creating ClusterOperator %s", self.cluster_operator_id.name)
            return await self._client.create(
                {
                    "apiVersion": CLUSTER_OPERATOR_API_VERSION,
                    "kind": CLUSTER_OPERATOR_KIND,
                    "metadata": {"name": self.cluster_operator_id.name},
                }
            )

    async def sync(self, key: str) -> None:
        """Recompute and write the ClusterOperator status."""
        await retry_on_conflict(self._sync_once, self._config.backoff)

    async def _sync_once(self) -> None:
        operator = await self._client.get(OPERATOR_ID)
        spec = OperatorSpec.parse_doc(operator)
        operator_status = OperatorStatus.parse_doc(operator)
        cluster_operator = await self._get_or_create()
        published = ClusterOperatorStatus.parse_doc(cluster_operator)
        status = aggregate(
            published,
            spec,
            operator_status,
            self._versions.get_versions(),
            self._config,
        )
        if (updated := status.to_dict()) == published.to_dict():
            _LOGGER.debug("ClusterOperator status is up to date")
            return
        cluster_operator["status"] = {
            **(cluster_operator.get("status") or {}),
            **updated,
        }
        await self._client.update_status(cluster_operator)
        _LOGGER.debug("Updated ClusterOperator status: %s", _summary(status.versions))


def _summary(versions: Sequence[OperandVersion]) -> str:
    return ", ".join(f"{v.name}={v.version}" for v in versions) or "no versions"
