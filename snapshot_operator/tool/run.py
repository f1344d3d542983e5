"""Command line tool for running the operator against a local cluster state."""

import asyncio
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
import signal
import sys
from typing import cast

import yaml

from snapshot_operator.cluster import InMemoryCluster, LoadOptions, load_cluster
from snapshot_operator.config import (
    DEFAULT_RESYNC_SECONDS,
    TARGET_NAME,
    OperatorConfig,
)
from snapshot_operator.exceptions import ObjectNotFoundError, StoppedError
from snapshot_operator.manifest import CLUSTER_OPERATOR_KIND, NamedResource
from snapshot_operator.starter import run_operator

_LOGGER = logging.getLogger(__name__)

# Seconds without any cluster write after which a --once run is settled.
DEFAULT_SETTLE_SECONDS = 0.5


async def stop_when_settled(
    client: InMemoryCluster, stop: asyncio.Event, settle_seconds: float
) -> None:
    """Set the stop event once nothing was written for settle_seconds."""
    last_version = -1
    while last_version != client.resource_version:
        last_version = client.resource_version
        await asyncio.sleep(settle_seconds)
    _LOGGER.info("Cluster settled at resourceVersion %d", last_version)
    stop.set()


class RunAction:
    """Run the operator against objects loaded from YAML files."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "run",
                help="Run the operator against a local cluster state",
                description=(
                    "Load cluster objects from YAML files into an in memory "
                    "cluster, run every controller and print the resulting "
                    "ClusterOperator."
                ),
            ),
        )
        args.add_argument(
            "path",
            help="File or directory with the initial cluster objects",
            type=pathlib.Path,
        )
        args.add_argument(
            "--once",
            action="store_true",
            help="Stop once the controllers stopped writing to the cluster",
        )
        args.add_argument(
            "--resync",
            type=float,
            default=DEFAULT_RESYNC_SECONDS,
            help="Seconds between two resyncs of every controller",
        )
        args.add_argument(
            "--settle",
            type=float,
            default=DEFAULT_SETTLE_SECONDS,
            help="Seconds without writes after which a --once run stops",
        )
        args.add_argument(
            "--workers",
            type=int,
            default=1,
            help="Number of workers of every controller",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        once: bool,
        resync: float,
        settle: float,
        workers: int,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        client = InMemoryCluster()
        await load_cluster(client, LoadOptions(path=path))
        config = OperatorConfig.from_env(resync_seconds=resync)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        settled: asyncio.Task[None] | None = None
        if once:
            settled = asyncio.create_task(stop_when_settled(client, stop, settle))
        try:
            await run_operator(config, client, stop, workers)
        except StoppedError:
            _LOGGER.info("Operator stopped")
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            if settled is not None:
                settled.cancel()

        cluster_operator_id = NamedResource(
            kind=CLUSTER_OPERATOR_KIND, namespace=None, name=TARGET_NAME
        )
        try:
            cluster_operator = await client.get(cluster_operator_id)
        except ObjectNotFoundError:
            _LOGGER.warning("ClusterOperator %s was not created", TARGET_NAME)
            return
        print(
            yaml.dump(cluster_operator, sort_keys=False, explicit_start=True),
            end="",
            file=sys.stdout,
        )
