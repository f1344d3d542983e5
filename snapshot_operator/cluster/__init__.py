"""
The cluster module provides the interface the controllers use to read, write
and watch cluster objects.

- Uses NamedResource as the key for all objects.
- Objects are plain kubernetes documents carrying a resourceVersion used for
  optimistic concurrency.
- Provides an in-memory implementation used for tests and local runs.
"""

from .client import ClusterClient, ClusterEvent, Listener
from .in_memory import InMemoryCluster
from .loader import LoadOptions, ResourceLoader, load_cluster

__all__ = [
    "ClusterClient",
    "ClusterEvent",
    "Listener",
    "InMemoryCluster",
    "LoadOptions",
    "ResourceLoader",
    "load_cluster",
]
