"""Controller confirming the versions the operands are running."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging

from snapshot_operator.cluster import ClusterClient
from snapshot_operator.conditions import OPERATOR_ID
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.deployment_controller import RolloutTracker
from snapshot_operator.factory import DEFAULT_KEY, Controller
from snapshot_operator.management import ManagementGate
from snapshot_operator.manifest import OPERATOR_KIND, OperatorSpec
from snapshot_operator.status_controller import VersionGetter

__all__ = ["VersionController", "VersionControllerConfig"]

_LOGGER = logging.getLogger(__name__)

CONTROLLER_NAME = "VersionController"


@dataclass
class VersionControllerConfig:
    """Configuration for the VersionController."""

    deployment_controllers: Sequence[str] = ()
    """Names of the controllers whose rollout must be complete."""

    versions: Mapping[str, str] = field(default_factory=dict)
    """Versions recorded once every rollout is complete, keyed by component."""

    resync_seconds: float = DEFAULT_RESYNC_SECONDS


class VersionController:
    """Records the target versions once every operand finished rolling out.

    Only rollouts confirmed by the Deployment controllers of this process
    count, so conditions left on the operator status by a previous release
    never advance the versions.
    """

    def __init__(
        self,
        client: ClusterClient,
        versions: VersionGetter,
        rollouts: RolloutTracker,
        gate: ManagementGate,
        config: VersionControllerConfig,
    ) -> None:
        """Initialize VersionController."""
        self.name = CONTROLLER_NAME
        self._client = client
        self._versions = versions
        self._rollouts = rollouts
        self._gate = gate
        self._config = config
        self._controller = Controller(
            CONTROLLER_NAME,
            self.sync,
            client,
            watch_kinds=(OPERATOR_KIND,),
            resync_seconds=config.resync_seconds,
        )

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        remove = self._rollouts.add_listener(
            lambda: self._controller.enqueue(DEFAULT_KEY)
        )
        try:
            await self._controller.run(stop, workers)
        finally:
            remove()

    def _pending_rollouts(self) -> list[str]:
        """Return the controllers whose rollout is still incomplete."""
        return [
            name
            for name in self._config.deployment_controllers
            if not self._rollouts.rolled_out(name)
        ]

    async def sync(self, key: str) -> None:
        """Record the versions if every rollout is complete."""
        spec = OperatorSpec.parse_doc(await self._client.get(OPERATOR_ID))
        if not self._gate.allows_sync(spec.management_state):
            _LOGGER.debug(
                "Management state %s, not recording versions", spec.management_state
            )
            return
        if pending := self._pending_rollouts():
            _LOGGER.debug("Waiting for rollout of %s", ", ".join(pending))
            return
        for name, version in self._config.versions.items():
            if not version:
                _LOGGER.debug("No version configured for %s", name)
                continue
            self._versions.set_version(name, version)
