"""Controller asserting a fixed set of conditions on the operator status."""

import asyncio
from collections.abc import Sequence
import logging

from snapshot_operator.cluster import ClusterClient
from snapshot_operator.conditions import (
    UPGRADEABLE,
    update_condition_fn,
    update_operator_status,
)
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.factory import Controller
from snapshot_operator.manifest import OPERATOR_KIND, ConditionStatus, OperatorCondition

__all__ = ["ConditionController", "DEFAULT_CONDITIONS"]

_LOGGER = logging.getLogger(__name__)

CONTROLLER_NAME = "ConditionController"

DEFAULT_CONDITIONS = (
    OperatorCondition(
        type=f"CSISnapshotController{UPGRADEABLE}",
        status=ConditionStatus.TRUE,
        reason="AsExpected",
    ),
)


class ConditionController:
    """Writes the same conditions on every resync, whatever else happens."""

    def __init__(
        self,
        client: ClusterClient,
        conditions: Sequence[OperatorCondition] = DEFAULT_CONDITIONS,
        resync_seconds: float = DEFAULT_RESYNC_SECONDS,
    ) -> None:
        """Initialize ConditionController."""
        self.name = CONTROLLER_NAME
        self._client = client
        self._conditions = tuple(conditions)
        self._controller = Controller(
            CONTROLLER_NAME,
            self.sync,
            client,
            watch_kinds=(OPERATOR_KIND,),
            resync_seconds=resync_seconds,
        )

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        await self._controller.run(stop, workers)

    async def sync(self, key: str) -> None:
        """Assert every condition."""
        await update_operator_status(
            self._client, *(update_condition_fn(c) for c in self._conditions)
        )
        _LOGGER.debug(
            "Asserted conditions %s", ", ".join(c.type for c in self._conditions)
        )
