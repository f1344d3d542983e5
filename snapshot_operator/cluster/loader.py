"""Loads an initial cluster state from YAML files.

This is used by the command line tool to seed an InMemoryCluster with the
objects the operator watches (Infrastructure, Nodes, the operator custom
resource, ...) before the controllers start.
"""

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, AsyncGenerator

import yaml

from snapshot_operator.exceptions import OperatorException
from snapshot_operator.manifest import resource_id

from .client import ClusterClient

__all__ = ["ResourceLoader", "LoadOptions"]

_LOGGER = logging.getLogger(__name__)


@dataclass
class LoadOptions:
    """Options for loading cluster objects.

    Attributes:
        path: Filesystem path to load objects from. Can be a file or directory.
        recursive: If True and path is a directory, load objects from all
                  subdirectories as well.
    """

    path: Path
    recursive: bool = True

    def __post_init__(self) -> None:
        """Resolve the path after initialization."""
        self.path = Path(self.path).expanduser().resolve()


class ResourceLoader:
    """Loads kubernetes documents from the filesystem."""

    async def load(self, options: LoadOptions) -> AsyncGenerator[dict[str, Any], None]:
        """Yield every document found at the path in the options."""
        _LOGGER.info("Loading objects from %s", options.path)

        if not options.path.exists():
            raise OperatorException(f"Path does not exist: {options.path}")

        if options.path.is_file():
            async for doc in self._load_file(options.path):
                yield doc
        elif options.path.is_dir():
            async for doc in self._load_directory(options.path, options):
                yield doc
        else:
            raise OperatorException(f"Path is not a file or directory: {options.path}")

    async def _load_directory(
        self, path: Path, options: LoadOptions
    ) -> AsyncGenerator[dict[str, Any], None]:
        for entry in sorted(path.iterdir()):
            if entry.is_file() and entry.suffix.lower() in (".yaml", ".yml"):
                async for doc in self._load_file(entry):
                    yield doc
            elif options.recursive and entry.is_dir():
                async for doc in self._load_directory(entry, options):
                    yield doc

    async def _load_file(self, path: Path) -> AsyncGenerator[dict[str, Any], None]:
        _LOGGER.debug("Processing file: %s", path)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            raise OperatorException(f"Failed to read file {path}: {e}") from e

        try:
            docs = list(yaml.safe_load_all(content))
        except yaml.YAMLError as e:
            raise OperatorException(f"Invalid YAML in file {path}: {e}") from e
        for doc in docs:
            if not doc:
                continue
            try:
                resource_id(doc)
            except OperatorException as e:
                _LOGGER.info("Skipping document in %s: %s", path, e)
                continue
            yield doc


async def load_cluster(client: ClusterClient, options: LoadOptions) -> int:
    """Create every object found at the path, returning the number created.

    A `status` stanza in a document is written with a separate status update,
    the way an object controller would report it.
    """
    count = 0
    async for doc in ResourceLoader().load(options):
        status = doc.pop("status", None)
        created = await client.create(doc)
        if status:
            created["status"] = status
            await client.update_status(created)
        _LOGGER.debug("Loaded %s", resource_id(created))
        count += 1
    _LOGGER.info("Loaded %d objects", count)
    return count
