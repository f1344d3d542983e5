"""Reconciler for static manifests and topology dependent resource sets."""

from .controller import (
    CONDITIONAL_ASSETS,
    STATIC_ASSETS,
    StaticResourceController,
    StaticResourceControllerConfig,
)
from .selector import (
    ExclusiveResourceSets,
    Predicate,
    ResourceSet,
    Selection,
    is_multi_node,
    is_single_node,
    select,
)

__all__ = [
    "CONDITIONAL_ASSETS",
    "STATIC_ASSETS",
    "StaticResourceController",
    "StaticResourceControllerConfig",
    "ExclusiveResourceSets",
    "Predicate",
    "ResourceSet",
    "Selection",
    "is_multi_node",
    "is_single_node",
    "select",
]
