"""Aggregation of the operator conditions and versions into a ClusterOperator."""

from .controller import (
    StatusController,
    StatusControllerConfig,
    aggregate,
    default_related_objects,
)
from .union import CLUSTER_CONDITION_DEFAULTS, union_condition, union_conditions
from .version import VersionGetter, merge_versions

__all__ = [
    "CLUSTER_CONDITION_DEFAULTS",
    "StatusController",
    "StatusControllerConfig",
    "VersionGetter",
    "aggregate",
    "default_related_objects",
    "merge_versions",
    "union_condition",
    "union_conditions",
]
