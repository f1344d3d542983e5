"""Management state gate shared by every controller.

The gate is built once at startup and handed to each controller. It answers
whether a controller may mutate cluster state for the management state
currently requested in the operator spec.
"""

from dataclasses import dataclass
import logging

from .manifest import ManagementState

__all__ = ["ManagementGate"]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManagementGate:
    """Process wide switch for mutating work.

    The operator is either removable (honors the Removed state by deleting
    its operands) or not. This is decided at startup and never changes.
    """

    removable: bool = True

    def allows_sync(self, management_state: str) -> bool:
        """Return True if controllers may mutate cluster state."""
        if management_state in (ManagementState.MANAGED, ManagementState.FORCE):
            return True
        if management_state == ManagementState.REMOVED:
            return self.removable
        if management_state == ManagementState.UNMANAGED:
            return False
        _LOGGER.debug("Unrecognized management state %r", management_state)
        return False

    def is_removing(self, management_state: str) -> bool:
        """Return True if operands should be deleted."""
        return self.removable and management_state == ManagementState.REMOVED
