"""Rollouts completed by the Deployment controllers of this process."""

from collections.abc import Callable
import logging

__all__ = ["RolloutTracker"]

_LOGGER = logging.getLogger(__name__)

RolloutListener = Callable[[], None]


class RolloutTracker:
    """Records which Deployment controllers saw their rollout complete.

    A controller is only recorded after it applied its current template and
    observed the resulting Deployment fully rolled out. Conditions persisted
    on the operator status by an earlier process never count.
    """

    def __init__(self) -> None:
        """Initialize RolloutTracker."""
        self._generations: dict[str, int] = {}
        self._listeners: list[RolloutListener] = []

    def confirm(self, name: str, generation: int) -> None:
        """Record that the Deployment of the controller rolled out."""
        if self._generations.get(name) == generation:
            return
        _LOGGER.info("%s rolled out generation %s", name, generation)
        self._generations[name] = generation
        self._notify()

    def reset(self, name: str) -> None:
        """Forget the rollout of the controller, it is in progress again."""
        if self._generations.pop(name, None) is not None:
            _LOGGER.debug("%s is rolling out again", name)
            self._notify()

    def rolled_out(self, name: str) -> bool:
        """Return True if the controller confirmed its rollout."""
        return name in self._generations

    def add_listener(self, listener: RolloutListener) -> Callable[[], None]:
        """Register a callback invoked when any rollout changes."""

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        self._listeners.append(listener)
        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
