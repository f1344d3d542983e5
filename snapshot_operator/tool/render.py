"""Command line tool for printing the manifests the operator would apply."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
import sys
from typing import Any, cast

import yaml

from snapshot_operator.assets import read_file
from snapshot_operator.cluster import InMemoryCluster, LoadOptions, load_cluster
from snapshot_operator.conditions import OPERATOR_ID
from snapshot_operator.config import OperatorConfig
from snapshot_operator.exceptions import ObjectNotFoundError
from snapshot_operator.manifest import OperatorSpec
from snapshot_operator.staticresource_controller import (
    CONDITIONAL_ASSETS,
    STATIC_ASSETS,
    select,
)
from snapshot_operator.starter import DEPLOYMENT_ASSETS, build_pipeline, load_assets
from snapshot_operator.topology import read_topology

_LOGGER = logging.getLogger(__name__)


class RenderAction:
    """Print the manifests rendered for a cluster state."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "render",
                help="Print the manifests rendered for a cluster state",
                description=(
                    "Load cluster objects from YAML files and print the "
                    "Deployments and static resources the operator would apply."
                ),
            ),
        )
        args.add_argument(
            "path",
            help="File or directory with the cluster objects",
            type=pathlib.Path,
        )
        args.add_argument(
            "--skip-static",
            action="store_true",
            help="Only print the rendered Deployments",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        skip_static: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        client = InMemoryCluster()
        await load_cluster(client, LoadOptions(path=path))
        try:
            spec = OperatorSpec.parse_doc(await client.get(OPERATOR_ID))
        except ObjectNotFoundError:
            _LOGGER.info("No %s found, using the default spec", OPERATOR_ID)
            spec = OperatorSpec()
        topology = await read_topology(client)
        pipeline = build_pipeline(OperatorConfig.from_env())

        docs: list[dict[str, Any]] = []
        for asset in DEPLOYMENT_ASSETS.values():
            docs.append(pipeline.apply(spec, topology, await read_file(asset)))
        if not skip_static:
            selection = select(CONDITIONAL_ASSETS, topology)
            for name in selection.skipped:
                _LOGGER.info("Topology is indeterminate, skipping %s", name)
            assets = await load_assets([*STATIC_ASSETS, *selection.apply_files])
            docs.extend(yaml.safe_load(content) for content in assets.values())
        print(
            yaml.dump_all(docs, sort_keys=False, explicit_start=True),
            end="",
            file=sys.stdout,
        )

