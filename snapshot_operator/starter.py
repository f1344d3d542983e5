"""Wiring of every controller of the operator.

`run_operator` is the entry point of the operator: it loads the embedded
assets, builds the controllers against one cluster client and runs them
concurrently until the stop event is set.

Controllers:
    - ClusterOperatorStatusController: publishes the ClusterOperator.
    - LoggingSyncer: applies operatorLogLevel to this process.
    - ManagementStateController: reports unsupported management states.
    - CSISnapshotStaticResourceController: CRDs, webhook configuration and
      the pod disruption budgets of multi node clusters.
    - CSISnapshotController: the snapshot controller Deployment.
    - CSISnapshotWebhookController: the validation webhook Deployment.
    - VersionController: confirms the versions once the rollouts completed.
    - ConditionController: asserts CSISnapshotControllerUpgradeable.
"""

import asyncio
from collections.abc import Iterable
import logging
from typing import NoReturn

from .assets import read_file
from .cluster import ClusterClient
from .config import TARGET_NAME, OperatorConfig
from .conditions import (
    AVAILABLE,
    DEGRADED,
    update_condition_fn,
    update_operator_status,
)
from .deployment_controller import (
    DeploymentController,
    DeploymentControllerConfig,
    ManifestPipeline,
    RolloutTracker,
    control_plane_topology_hook,
    replace_placeholders_hook,
    replicas_hook,
)
from .exceptions import ClusterException, StoppedError, TransientError
from .factory import Runnable
from .management import ManagementGate
from .manifest import ConditionStatus, OperatorCondition
from .operator_controller import (
    ConditionController,
    LogLevelController,
    ManagementStateController,
    VersionController,
    VersionControllerConfig,
)
from .staticresource_controller import (
    CONDITIONAL_ASSETS,
    STATIC_ASSETS,
    StaticResourceController,
    StaticResourceControllerConfig,
)
from .status_controller import (
    StatusController,
    StatusControllerConfig,
    VersionGetter,
    default_related_objects,
)

__all__ = ["run_operator", "build_controllers", "build_pipeline", "load_assets"]

_LOGGER = logging.getLogger(__name__)

OPERATOR_VERSION_NAME = "operator"
OPERAND_VERSION_NAME = TARGET_NAME

# Deployment controllers and their templates.
DEPLOYMENT_ASSETS = {
    "CSISnapshotController": "csi_controller_deployment.yaml",
    "CSISnapshotWebhookController": "webhook_deployment.yaml",
}


async def load_assets(names: Iterable[str]) -> dict[str, bytes]:
    """Read the named assets.

    Raises:
        AssetException: If an asset cannot be read.
    """
    return {name: await read_file(name) for name in names}


def build_pipeline(config: OperatorConfig) -> ManifestPipeline:
    """Return the pipeline rendering both Deployment templates."""
    images = {
        "OPERAND_IMAGE": config.operand_image,
        "WEBHOOK_IMAGE": config.webhook_image,
    }
    return ManifestPipeline(
        manifest_hooks=[replace_placeholders_hook(images)],
        deployment_hooks=[control_plane_topology_hook, replicas_hook],
    )


def _all_asset_names() -> list[str]:
    names = [*DEPLOYMENT_ASSETS.values(), *STATIC_ASSETS]
    for pair in CONDITIONAL_ASSETS:
        names.extend(pair.when_true.files)
        names.extend(pair.when_false.files)
    return names


async def build_controllers(
    config: OperatorConfig,
    client: ClusterClient,
    versions: VersionGetter | None = None,
) -> list[Runnable]:
    """Build every controller of the operator.

    Raises:
        AssetException: If an embedded asset is missing or invalid.
    """
    assets = await load_assets(_all_asset_names())
    if versions is None:
        versions = VersionGetter()
    gate = ManagementGate(removable=config.removable)
    rollouts = RolloutTracker()
    pipeline = build_pipeline(config)
    target_versions = {
        name: version
        for name, version in (
            (OPERATOR_VERSION_NAME, config.operator_version),
            (OPERAND_VERSION_NAME, config.operand_version),
        )
        if version
    }

    controllers: list[Runnable] = [
        StatusController(
            client,
            versions,
            StatusControllerConfig(
                related_objects=default_related_objects(
                    config.operator_namespace, config.target_namespace
                ),
                required_available=tuple(
                    f"{name}{AVAILABLE}" for name in DEPLOYMENT_ASSETS
                ),
                target_versions=target_versions,
                resync_seconds=config.resync_seconds,
            ),
        ),
        LogLevelController(client, resync_seconds=config.resync_seconds),
        ManagementStateController(client, gate, resync_seconds=config.resync_seconds),
        StaticResourceController(
            client,
            assets,
            gate,
            StaticResourceControllerConfig(resync_seconds=config.resync_seconds),
        ),
    ]
    for name, asset in DEPLOYMENT_ASSETS.items():
        controllers.append(
            DeploymentController(
                client,
                pipeline,
                gate,
                DeploymentControllerConfig(
                    name=name,
                    template=assets[asset],
                    resync_seconds=config.resync_seconds,
                ),
                rollouts,
            )
        )
    controllers.extend(
        [
            VersionController(
                client,
                versions,
                rollouts,
                gate,
                VersionControllerConfig(
                    deployment_controllers=tuple(DEPLOYMENT_ASSETS),
                    versions=target_versions,
                    resync_seconds=config.resync_seconds,
                ),
            ),
            ConditionController(client, resync_seconds=config.resync_seconds),
        ]
    )
    return controllers


async def _report_stopped(client: ClusterClient, name: str, err: Exception) -> None:
    condition = OperatorCondition(
        type=f"{name}{DEGRADED}",
        status=ConditionStatus.TRUE,
        reason="ControllerStopped",
        message=f"Controller stopped unexpectedly: {err}",
    )
    try:
        await update_operator_status(client, update_condition_fn(condition))
    except (ClusterException, TransientError) as report_err:
        _LOGGER.warning("%s: unable to report degraded status: %s", name, report_err)


async def _run_controller(
    controller: Runnable, client: ClusterClient, stop: asyncio.Event, workers: int
) -> None:
    try:
        await controller.run(stop, workers)
    except Exception as err:
        _LOGGER.exception("Controller %s stopped unexpectedly", controller.name)
        await _report_stopped(client, controller.name, err)


async def run_operator(
    config: OperatorConfig,
    client: ClusterClient,
    stop: asyncio.Event,
    workers: int = 1,
) -> NoReturn:
    """Run every controller until the stop event is set.

    A controller that stops unexpectedly is reported as `<Name>Degraded` and
    the remaining controllers keep running.

    Raises:
        AssetException: If the controllers could not be built.
        StoppedError: Always, once the stop event is set and the controllers
            have shut down.
    """
    controllers = await build_controllers(config, client)
    _LOGGER.info("Starting %d controllers", len(controllers))
    tasks = [
        asyncio.create_task(
            _run_controller(controller, client, stop, workers), name=controller.name
        )
        for controller in controllers
    ]
    try:
        await stop.wait()
    finally:
        stop.set()
        await asyncio.gather(*tasks, return_exceptions=True)
    _LOGGER.info("All controllers stopped")
    raise StoppedError("stopped")
