"""Controllers maintaining the operator's own status and process settings."""

from .condition import DEFAULT_CONDITIONS, ConditionController
from .loglevel import LogLevelController, logging_level
from .management import ManagementStateController, management_condition
from .version import VersionController, VersionControllerConfig

__all__ = [
    "DEFAULT_CONDITIONS",
    "ConditionController",
    "LogLevelController",
    "ManagementStateController",
    "VersionController",
    "VersionControllerConfig",
    "logging_level",
    "management_condition",
]
