"""Interface for the cluster API used by the controllers."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

from snapshot_operator.manifest import NamedResource

__all__ = [
    "ClusterClient",
    "ClusterEvent",
    "Listener",
]


class ClusterEvent(str, Enum):
    """Enum for watch events."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


Listener = Callable[[ClusterEvent, dict[str, Any]], None]


class ClusterClient(ABC):
    """Abstract base class for a strongly consistent object store.

    Objects are plain kubernetes documents. Every write bumps the object
    `metadata.resourceVersion`; writes that carry a resourceVersion are
    rejected with a ConflictError when the object changed since it was read.
    """

    @abstractmethod
    async def get(self, resource_id: NamedResource) -> dict[str, Any]:
        """Return a copy of the object or raise ObjectNotFoundError."""

    @abstractmethod
    async def list_objects(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List copies of all objects of a kind, optionally filtered."""

    @abstractmethod
    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create a new object or raise AlreadyExistsError."""

    @abstractmethod
    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace everything but the status of an existing object.

        Raises ConflictError if `metadata.resourceVersion` is set and stale.
        """

    @abstractmethod
    async def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace only the status of an existing object.

        Raises ConflictError if `metadata.resourceVersion` is set and stale.
        """

    @abstractmethod
    async def apply(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create the object or update it in place without a version check.

        The status of an existing object is preserved.
        """

    @abstractmethod
    async def delete(self, resource_id: NamedResource) -> bool:
        """Delete an object, returning False if it did not exist."""

    @abstractmethod
    def add_listener(self, kind: str, callback: Listener) -> Callable[[], None]:
        """Register a callback for changes to objects of a kind.

        Returns a callable that can be called to remove the listener.
        """
