"""Selection of conditional resource sets from a topology snapshot.

Some resources only make sense for one shape of cluster, e.g. pod disruption
budgets on a single node cluster would block every drain. Such resources come
in mutually exclusive pairs owned by one predicate, so the two variants are
always decided from the same evaluation of the same snapshot.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
import logging

from snapshot_operator.topology import TopologySnapshot

__all__ = [
    "ResourceSet",
    "ExclusiveResourceSets",
    "Selection",
    "Predicate",
    "select",
    "is_multi_node",
    "is_single_node",
]

_LOGGER = logging.getLogger(__name__)

Predicate = Callable[[TopologySnapshot], bool | None]


@dataclass(frozen=True)
class ResourceSet:
    """A named group of asset files enabled or disabled together."""

    name: str
    files: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExclusiveResourceSets:
    """Two resource sets of which at most one is enabled at a time.

    The predicate returns None when it cannot conclude, in which case neither
    set is touched.
    """

    name: str
    predicate: Predicate
    when_true: ResourceSet
    when_false: ResourceSet = field(default_factory=lambda: ResourceSet("none"))


@dataclass(frozen=True)
class Selection:
    """Outcome of evaluating every pair against one snapshot."""

    enabled: tuple[ResourceSet, ...] = ()
    """Sets whose files should exist."""

    disabled: tuple[ResourceSet, ...] = ()
    """Sets whose files should be deleted."""

    skipped: tuple[str, ...] = ()
    """Names of the pairs whose predicate was indeterminate."""

    @property
    def apply_files(self) -> list[str]:
        return [f for resource_set in self.enabled for f in resource_set.files]

    @property
    def delete_files(self) -> list[str]:
        return [f for resource_set in self.disabled for f in resource_set.files]


def is_single_node(topology: TopologySnapshot) -> bool | None:
    """Whether the cluster runs a single node control plane."""
    return topology.single_node


def is_multi_node(topology: TopologySnapshot) -> bool | None:
    """Whether the cluster runs more than one control plane node."""
    if (single_node := topology.single_node) is None:
        return None
    return not single_node


def select(
    pairs: Iterable[ExclusiveResourceSets], topology: TopologySnapshot
) -> Selection:
    """Decide which resource sets are enabled for this snapshot."""
    enabled: list[ResourceSet] = []
    disabled: list[ResourceSet] = []
    skipped: list[str] = []
    for pair in pairs:
        try:
            outcome = pair.predicate(topology)
        except Exception as err:
            _LOGGER.debug("Precheck for %s failed, skipping: %s", pair.name, err)
            skipped.append(pair.name)
            continue
        if outcome is None:
            _LOGGER.debug("Precheck for %s is indeterminate, skipping", pair.name)
            skipped.append(pair.name)
            continue
        if outcome:
            enabled.append(pair.when_true)
            disabled.append(pair.when_false)
        else:
            enabled.append(pair.when_false)
            disabled.append(pair.when_true)
    return Selection(
        enabled=tuple(enabled), disabled=tuple(disabled), skipped=tuple(skipped)
    )
