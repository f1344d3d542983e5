"""Controller applying the operatorLogLevel of the operator resource to this process."""

import asyncio
import logging

from snapshot_operator.cluster import ClusterClient
from snapshot_operator.conditions import OPERATOR_ID
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.factory import Controller
from snapshot_operator.manifest import OPERATOR_KIND, LogLevel, OperatorSpec

__all__ = ["LogLevelController", "logging_level"]

_LOGGER = logging.getLogger(__name__)

CONTROLLER_NAME = "LoggingSyncer"


def logging_level(operator_log_level: str | None) -> int:
    """Return the python logging level for an operator log level."""
    if not operator_log_level or operator_log_level == LogLevel.NORMAL:
        return logging.INFO
    if operator_log_level in (LogLevel.DEBUG, LogLevel.TRACE, LogLevel.TRACE_ALL):
        return logging.DEBUG
    _LOGGER.warning("Unknown operatorLogLevel %r, using Normal", operator_log_level)
    return logging.INFO


class LogLevelController:
    """Keeps the level of the operator logger in sync with spec.operatorLogLevel."""

    def __init__(
        self,
        client: ClusterClient,
        logger_name: str = "snapshot_operator",
        resync_seconds: float = DEFAULT_RESYNC_SECONDS,
    ) -> None:
        """Initialize LogLevelController."""
        self.name = CONTROLLER_NAME
        self._client = client
        self._logger = logging.getLogger(logger_name)
        self._controller = Controller(
            CONTROLLER_NAME,
            self.sync,
            client,
            watch_kinds=(OPERATOR_KIND,),
            resync_seconds=resync_seconds,
        )

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set."""
        await self._controller.run(stop, workers)

    async def sync(self, key: str) -> None:
        """Set the logger level from the operator spec."""
        spec = OperatorSpec.parse_doc(await self._client.get(OPERATOR_ID))
        level = logging_level(spec.operator_log_level)
        if self._logger.level == level:
            return
        self._logger.setLevel(level)
        _LOGGER.info(
            "Operator log level set to %s (%s)",
            spec.operator_log_level or LogLevel.NORMAL.value,
            logging.getLevelName(level),
        )
