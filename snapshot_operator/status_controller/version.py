"""Version tracking for the ClusterOperator status."""

from collections.abc import Callable, Mapping
import logging

from snapshot_operator.manifest import OperandVersion

__all__ = ["VersionGetter", "merge_versions"]

_LOGGER = logging.getLogger(__name__)

VersionListener = Callable[[], None]


class VersionGetter:
    """Holds the component versions confirmed by this process.

    Versions are set by the version controller once the operands run them and
    read by the status controller when publishing the ClusterOperator.
    """

    def __init__(self) -> None:
        """Initialize VersionGetter."""
        self._versions: dict[str, str] = {}
        self._listeners: list[VersionListener] = []

    def set_version(self, name: str, version: str) -> None:
        """Record a confirmed version, notifying listeners on change."""
        if self._versions.get(name) == version:
            return
        _LOGGER.info("Version of %s is now %s", name, version)
        self._versions[name] = version
        for listener in list(self._listeners):
            listener()

    def get_versions(self) -> dict[str, str]:
        """Return a copy of the confirmed versions."""
        return dict(self._versions)

    def add_listener(self, listener: VersionListener) -> Callable[[], None]:
        """Register a callback invoked when any version changes."""

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        self._listeners.append(listener)
        return remove


def merge_versions(
    published: Mapping[str, str],
    observed: Mapping[str, str],
    targets: Mapping[str, str],
) -> list[OperandVersion]:
    """Overlay the observed versions on the published ones.

    A published version that already equals its target is kept even when the
    observed version differs: once reported, the target version is never
    replaced by an older observation.
    """
    result = dict(published)
    for name, version in observed.items():
        current = result.get(name)
        if current == version:
            continue
        if (target := targets.get(name)) and current == target:
            _LOGGER.debug(
                "Keeping reported version %s=%s over observed %s",
                name,
                current,
                version,
            )
            continue
        result[name] = version
    return [OperandVersion(name=name, version=result[name]) for name in sorted(result)]
