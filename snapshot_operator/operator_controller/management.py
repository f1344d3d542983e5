"""Controller reporting unsupported management states."""

import asyncio
import logging

from snapshot_operator.cluster import ClusterClient
from snapshot_operator.conditions import (
    DEGRADED,
    OPERATOR_ID,
    update_condition_fn,
    update_operator_status,
)
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.factory import Controller
from snapshot_operator.management import ManagementGate
from snapshot_operator.manifest import (
    OPERATOR_KIND,
    ConditionStatus,
    ManagementState,
    OperatorCondition,
    OperatorSpec,
)

__all__ = ["ManagementStateController", "management_condition"]

_LOGGER = logging.getLogger(__name__)

CONTROLLER_NAME = "ManagementState"


def management_condition(
    gate: ManagementGate, management_state: str
) -> OperatorCondition:
    """Return the ManagementStateDegraded condition for a requested state."""
    condition_type = f"{CONTROLLER_NAME}{DEGRADED}"
    if management_state not in {state.value for state in ManagementState}:
        return OperatorCondition(
            type=condition_type,
            status=ConditionStatus.TRUE,
            reason="UnknownState",
            message=f'Unsupported management state "{management_state}"',
        )
    if management_state == ManagementState.REMOVED and not gate.removable:
        return OperatorCondition(
            type=condition_type,
            status=ConditionStatus.TRUE,
            reason="NonRemovable",
            message='Unsupported management state "Removed" for this operator',
        )
    return OperatorCondition(
        type=condition_type, status=ConditionStatus.FALSE, reason="AsExpected"
    )


class ManagementStateController:
    """Reports ManagementStateDegraded when the requested state is unsupported."""

    def __init__(
        self,
        client: ClusterClient,
        gate: ManagementGate,
        resync_seconds: float = DEFAULT_RESYNC_SECONDS,
    ) -> None:
        """Initialize ManagementStateController."""
        self.name = "ManagementStateController"
        self._client = client
        self._gate = gate
        self._controller = Controller(
            self.name,
            self.sync,
            client,
            watch_kinds=(OPERATOR_KIND,),
            resync_seconds=resync_seconds,
        )

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        await self._controller.run(stop, workers)

    async def sync(self, key: str) -> None:
        """Write the ManagementStateDegraded condition."""
        spec = OperatorSpec.parse_doc(await self._client.get(OPERATOR_ID))
        condition = management_condition(self._gate, spec.management_state)
        if condition.status == ConditionStatus.TRUE:
            _LOGGER.warning("%s: %s", self.name, condition.message)
        await update_operator_status(self._client, update_condition_fn(condition))
