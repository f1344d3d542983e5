"""Module for an in memory cluster object store."""

import asyncio
from collections import defaultdict
from collections.abc import Callable
import copy
import itertools
import logging
from typing import Any, DefaultDict

from snapshot_operator.exceptions import (
    AlreadyExistsError,
    ConflictError,
    ObjectNotFoundError,
)
from snapshot_operator.manifest import NamedResource, resource_id as doc_resource_id

from .client import ClusterClient, ClusterEvent, Listener

_LOGGER = logging.getLogger(__name__)

# Top level keys that are not part of the desired state of an object.
_NON_SPEC_KEYS = {"metadata", "status", "apiVersion", "kind"}


def _spec_of(obj: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in obj.items() if k not in _NON_SPEC_KEYS}


def _unchanged(current: dict[str, Any], new: dict[str, Any]) -> bool:
    """Return True if only the resourceVersion differs."""
    current_meta = dict(current["metadata"], resourceVersion=None)
    new_meta = dict(new["metadata"], resourceVersion=None)
    return (
        current_meta == new_meta
        and _spec_of(current) == _spec_of(new)
        and current.get("status") == new.get("status")
    )


def _matches(labels: dict[str, str], selector: dict[str, str]) -> bool:
    return all(labels.get(k) == v for k, v in selector.items())


class InMemoryCluster(ClusterClient):
    """In-memory implementation of the ClusterClient interface.

    Stores objects keyed by NamedResource, versions every write and notifies
    listeners of changes. Every call yields to the event loop once, the way a
    round trip to a real API server would.
    """

    def __init__(self) -> None:
        """Initialize the InMemoryCluster."""
        self._objects: dict[NamedResource, dict[str, Any]] = {}
        self._listeners: DefaultDict[str, list[Listener]] = defaultdict(list)
        self._versions = itertools.count(1)
        self._last_version = 0

    @property
    def resource_version(self) -> int:
        """Number of writes accepted so far, including deletes."""
        return self._last_version

    def _next_version(self) -> str:
        self._last_version = next(self._versions)
        return str(self._last_version)

    def _lookup(self, resource_id: NamedResource) -> dict[str, Any]:
        if (obj := self._objects.get(resource_id)) is None:
            raise ObjectNotFoundError(f"Object {resource_id} not found")
        return obj

    def _check_version(self, resource_id: NamedResource, obj: dict[str, Any]) -> None:
        current = self._lookup(resource_id)
        expected = obj.get("metadata", {}).get("resourceVersion")
        actual = current["metadata"]["resourceVersion"]
        if expected is not None and expected != actual:
            raise ConflictError(str(resource_id), expected, actual)

    def _store(
        self, resource_id: NamedResource, obj: dict[str, Any], event: ClusterEvent
    ) -> dict[str, Any]:
        if event == ClusterEvent.MODIFIED and _unchanged(
            self._objects[resource_id], obj
        ):
            _LOGGER.debug("No changes to %s, skipping write", resource_id)
            return copy.deepcopy(self._objects[resource_id])
        obj["metadata"]["resourceVersion"] = self._next_version()
        self._objects[resource_id] = obj
        _LOGGER.debug(
            "Stored %s at resourceVersion %s",
            resource_id,
            obj["metadata"]["resourceVersion"],
        )
        self._fire_event(event, obj)
        return copy.deepcopy(obj)

    async def get(self, resource_id: NamedResource) -> dict[str, Any]:
        """Return a copy of the object or raise ObjectNotFoundError."""
        await asyncio.sleep(0)
        return copy.deepcopy(self._lookup(resource_id))

    async def list_objects(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List copies of all objects of a kind, optionally filtered."""
        await asyncio.sleep(0)
        result = []
        for rid, obj in sorted(self._objects.items(), key=lambda item: str(item[0])):
            if rid.kind != kind:
                continue
            if namespace is not None and rid.namespace != namespace:
                continue
            labels = obj["metadata"].get("labels") or {}
            if label_selector and not _matches(labels, label_selector):
                continue
            result.append(copy.deepcopy(obj))
        return result

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create a new object or raise AlreadyExistsError."""
        await asyncio.sleep(0)
        rid = doc_resource_id(obj)
        if rid in self._objects:
            raise AlreadyExistsError(f"Object {rid} already exists")
        new_obj = copy.deepcopy(obj)
        new_obj["metadata"]["generation"] = 1
        return self._store(rid, new_obj, ClusterEvent.ADDED)

    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace everything but the status of an existing object."""
        await asyncio.sleep(0)
        rid = doc_resource_id(obj)
        self._check_version(rid, obj)
        return self._replace_spec(rid, obj)

    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace only the status of an existing object."""
        await asyncio.sleep(0)
        rid = doc_resource_id(obj)
        self._check_version(rid, obj)
        new_obj = copy.deepcopy(self._objects[rid])
        new_obj["status"] = copy.deepcopy(obj.get("status") or {})
        return self._store(rid, new_obj, ClusterEvent.MODIFIED)

    async def apply(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create the object or update it in place without a version check."""
        await asyncio.sleep(0)
        rid = doc_resource_id(obj)
        if rid not in self._objects:
            new_obj = copy.deepcopy(obj)
            new_obj["metadata"]["generation"] = 1
            new_obj["metadata"].pop("resourceVersion", None)
            return self._store(rid, new_obj, ClusterEvent.ADDED)
        unversioned = copy.deepcopy(obj)
        unversioned["metadata"].pop("resourceVersion", None)
        return self._replace_spec(rid, unversioned)

    def _replace_spec(
        self, resource_id: NamedResource, obj: dict[str, Any]
    ) -> dict[str, Any]:
        current = self._objects[resource_id]
        new_obj = copy.deepcopy(obj)
        new_obj.pop("status", None)
        if "status" in current:
            new_obj["status"] = copy.deepcopy(current["status"])
        generation = current["metadata"].get("generation", 1)
        if _spec_of(new_obj) != _spec_of(current):
            generation += 1
        new_obj["metadata"]["generation"] = generation
        return self._store(resource_id, new_obj, ClusterEvent.MODIFIED)

    async def delete(self, resource_id: NamedResource) -> bool:
        """Delete an object, returning False if it did not exist."""
        await asyncio.sleep(0)
        if (obj := self._objects.pop(resource_id, None)) is None:
            return False
        self._next_version()
        _LOGGER.debug("Deleted %s", resource_id)
        self._fire_event(ClusterEvent.DELETED, obj)
        return True

    def add_listener(self, kind: str, callback: Listener) -> Callable[[], None]:
        """Register a callback for changes to objects of a kind."""

        def remove() -> None:
            if callback in self._listeners[kind]:
                self._listeners[kind].remove(callback)

        self._listeners[kind].append(callback)
        return remove

    def _fire_event(self, event: ClusterEvent, obj: dict[str, Any]) -> None:
        for cb in list(self._listeners[obj["kind"]]):
            try:
                cb(event, copy.deepcopy(obj))
            except Exception:
                _LOGGER.exception("Cluster listener failed for event %s", event)
