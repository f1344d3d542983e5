"""Static resource controller implementation.

Applies the manifests that do not depend on the operator spec: the snapshot
CustomResourceDefinitions, the webhook configuration and the conditional
resource sets picked by the selector for the current topology.
"""

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

import yaml

from snapshot_operator.cluster import ClusterClient
from snapshot_operator.conditions import OPERATOR_ID
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.exceptions import (
    AssetException,
    ClusterException,
    OperatorException,
)
from snapshot_operator.factory import Controller
from snapshot_operator.management import ManagementGate
from snapshot_operator.manifest import (
    INFRASTRUCTURE_KIND,
    NODE_KIND,
    OPERATOR_KIND,
    NamedResource,
    OperatorSpec,
    resource_id,
)
from snapshot_operator.topology import read_topology

from .selector import (
    ExclusiveResourceSets,
    ResourceSet,
    Selection,
    is_multi_node,
    select,
)

__all__ = [
    "StaticResourceController",
    "StaticResourceControllerConfig",
    "STATIC_ASSETS",
    "CONDITIONAL_ASSETS",
]

_LOGGER = logging.getLogger(__name__)

CONTROLLER_NAME = "CSISnapshotStaticResourceController"

STATIC_ASSETS = (
    "volumesnapshots.yaml",
    "volumesnapshotcontents.yaml",
    "volumesnapshotclasses.yaml",
    "webhook_config.yaml",
)

CONDITIONAL_ASSETS = (
    ExclusiveResourceSets(
        name="pod-disruption-budgets",
        predicate=is_multi_node,
        when_true=ResourceSet(
            name="multi-node",
            files=(
                "csi_controller_deployment_pdb.yaml",
                "webhook_deployment_pdb.yaml",
            ),
        ),
    ),
)


@dataclass
class StaticResourceControllerConfig:
    """Configuration for the StaticResourceController."""

    name: str = CONTROLLER_NAME
    static_assets: tuple[str, ...] = STATIC_ASSETS
    conditional_assets: tuple[ExclusiveResourceSets, ...] = CONDITIONAL_ASSETS
    resync_seconds: float = DEFAULT_RESYNC_SECONDS


def _parse_asset(name: str, content: bytes) -> dict[str, Any]:
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise AssetException(f"Invalid asset {name}: {err}") from err
    if not isinstance(doc, dict):
        raise AssetException(f"Asset {name} is not a kubernetes object")
    try:
        resource_id(doc)
    except OperatorException as err:
        raise AssetException(f"Asset {name}: {err}") from err
    return doc


class StaticResourceController:
    """Controller for applying static and topology dependent manifests."""

    def __init__(
        self,
        client: ClusterClient,
        assets: Mapping[str, bytes],
        gate: ManagementGate,
        config: StaticResourceControllerConfig,
    ) -> None:
        """Initialize the controller.

        Args:
            client: The cluster the manifests are applied to
            assets: Raw asset contents keyed by file name
            gate: Decides whether the manifests may be mutated
            config: The configuration for the controller

        Raises:
            AssetException: If an asset is missing or invalid.
        """
        self.name = config.name
        self._client = client
        self._gate = gate
        self._static_assets = config.static_assets
        self._conditional_assets = config.conditional_assets
        self._docs: dict[str, dict[str, Any]] = {}
        for file in self._all_files():
            if file not in assets:
                raise AssetException(f"Missing asset {file}")
            self._docs[file] = _parse_asset(file, assets[file])
        watch_kinds = {OPERATOR_KIND, NODE_KIND, INFRASTRUCTURE_KIND}
        watch_kinds.update(doc["kind"] for doc in self._docs.values())
        self._controller = Controller(
            config.name,
            self.sync,
            client,
            watch_kinds=sorted(watch_kinds),
            resync_seconds=config.resync_seconds,
            report_degraded=True,
        )

    def _all_files(self) -> Iterable[str]:
        yield from self._static_assets
        for pair in self._conditional_assets:
            yield from pair.when_true.files
            yield from pair.when_false.files

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        await self._controller.run(stop, workers)

    async def sync(self, key: str) -> None:
        """Apply the static assets and the current selection of conditional ones.

        Every asset is attempted even when an earlier one failed; the failures
        are raised together afterwards.
        """
        spec = OperatorSpec.parse_doc(await self._client.get(OPERATOR_ID))
        if self._gate.is_removing(spec.management_state):
            if errors := await self._delete(list(self._all_files())):
                raise OperatorException("; ".join(errors))
            return
        if not self._gate.allows_sync(spec.management_state):
            _LOGGER.debug(
                "%s: management state %s, not syncing",
                self.name,
                spec.management_state,
            )
            return

        topology = await read_topology(self._client)
        selection = select(self._conditional_assets, topology)
        errors = await self._apply([*self._static_assets, *selection.apply_files])
        errors.extend(await self._delete(selection.delete_files))
        if errors:
            raise OperatorException("; ".join(errors))
        self._log_selection(selection)

    def _log_selection(self, selection: Selection) -> None:
        for resource_set in selection.enabled:
            _LOGGER.debug("%s: resource set %s enabled", self.name, resource_set.name)
        for name in selection.skipped:
            _LOGGER.debug("%s: resource sets %s left untouched", self.name, name)

    async def _apply(self, files: Iterable[str]) -> list[str]:
        errors = []
        for file in files:
            try:
                await self._client.apply(self._docs[file])
            except ClusterException as err:
                errors.append(f"{file}: {err}")
        return errors

    async def _delete(self, files: Iterable[str]) -> list[str]:
        errors = []
        for file in files:
            rid: NamedResource = resource_id(self._docs[file])
            try:
                if await self._client.delete(rid):
                    _LOGGER.info("%s: deleted %s", self.name, rid)
            except ClusterException as err:
                errors.append(f"{file}: {err}")
        return errors

