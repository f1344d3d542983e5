"""Generic controller runner shared by every reconcile loop of the operator.

A controller is a sync function plus the plumbing that decides when to call
it:

    - Watch listeners on the cluster kinds the sync reads. Every change maps to
      a queue key, so a burst of events collapses into one sync.
    - A periodic resync that re-enqueues every key seen so far, so a missed
      event only delays convergence.
    - One or more workers draining the queue. A failed sync is requeued with
      exponential backoff and may be reported as a `<Name>Degraded` condition
      on the operator status.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
import logging
from typing import Any, Protocol

from snapshot_operator.cluster import ClusterClient, ClusterEvent
from snapshot_operator.conditions import (
    DEGRADED,
    update_condition_fn,
    update_operator_status,
)
from snapshot_operator.config import DEFAULT_RESYNC_SECONDS
from snapshot_operator.exceptions import ClusterException, TransientError
from snapshot_operator.manifest import ConditionStatus, OperatorCondition

from .queue import WorkQueue

__all__ = ["Controller", "Runnable", "SyncFunc", "KeyFunc", "DEFAULT_KEY"]

_LOGGER = logging.getLogger(__name__)

DEFAULT_KEY = "key"

SyncFunc = Callable[[str], Awaitable[None]]
KeyFunc = Callable[[ClusterEvent, dict[str, Any]], str | None]


class Runnable(Protocol):
    """Anything the operator can start as an independent control loop."""

    name: str

    async def run(self, stop: asyncio.Event, workers: int) -> None:
        """Run until the stop event is set."""


def _default_key(event: ClusterEvent, obj: dict[str, Any]) -> str | None:
    return DEFAULT_KEY


class Controller:
    """Drives a sync function from a dedup queue, watches and a resync timer."""

    def __init__(
        self,
        name: str,
        sync: SyncFunc,
        client: ClusterClient,
        *,
        watch_kinds: Iterable[str] = (),
        key_func: KeyFunc = _default_key,
        initial_keys: Iterable[str] = (DEFAULT_KEY,),
        resync_seconds: float = DEFAULT_RESYNC_SECONDS,
        report_degraded: bool = False,
    ) -> None:
        """Initialize the controller.

        Args:
            name: Name of the controller, also the prefix of its conditions.
            sync: Coroutine function reconciling one queue key.
            client: Cluster client used for watches and degraded reporting.
            watch_kinds: Kinds whose changes enqueue a key.
            key_func: Maps a watch event to a key, or None to ignore it.
            initial_keys: Keys enqueued when the controller starts.
            resync_seconds: Interval of the periodic resync.
            report_degraded: Whether sync errors set `<name>Degraded`.
        """
        self.name = name
        self._sync = sync
        self._client = client
        self._watch_kinds = tuple(watch_kinds)
        self._key_func = key_func
        self._initial_keys = tuple(initial_keys)
        self._resync_seconds = resync_seconds
        self._report_degraded = report_degraded
        self._known_keys: set[str] = set()
        self.queue: WorkQueue[str] = WorkQueue(name)

    def enqueue(self, key: str) -> None:
        """Request a sync of the key."""
        self._known_keys.add(key)
        self.queue.add(key)

    def _on_event(self, event: ClusterEvent, obj: dict[str, Any]) -> None:
        if (key := self._key_func(event, obj)) is not None:
            self.enqueue(key)

    async def run(self, stop: asyncio.Event, workers: int = 1) -> None:
        """Run the controller until the stop event is set.

        In flight syncs are allowed to finish before this returns.
        """
        _LOGGER.info("Starting %s", self.name)
        remove_listeners = [
            self._client.add_listener(kind, self._on_event)
            for kind in self._watch_kinds
        ]
        for key in self._initial_keys:
            self.enqueue(key)
        worker_tasks = [
            asyncio.create_task(self._worker(), name=f"{self.name}-worker-{i}")
            for i in range(workers)
        ]
        resync_task = asyncio.create_task(self._resync(), name=f"{self.name}-resync")
        try:
            await stop.wait()
        finally:
            _LOGGER.info("Shutting down %s", self.name)
            for remove in remove_listeners:
                remove()
            resync_task.cancel()
            self.queue.shutdown()
            await asyncio.gather(resync_task, *worker_tasks, return_exceptions=True)
            _LOGGER.info("Stopped %s", self.name)

    async def _resync(self) -> None:
        while True:
            await asyncio.sleep(self._resync_seconds)
            _LOGGER.debug("%s: resync of %d keys", self.name, len(self._known_keys))
            for key in sorted(self._known_keys):
                self.queue.add(key)

    async def _worker(self) -> None:
        while (key := await self.queue.get()) is not None:
            try:
                await self.process(key)
            except Exception:
                _LOGGER.exception("%s: error processing %s", self.name, key)
                self.queue.add_rate_limited(key)
            finally:
                self.queue.done(key)

    async def process(self, key: str) -> None:
        """Sync one key, requeueing it with backoff if the sync fails."""
        try:
            await self._sync(key)
        except Exception as err:
            _LOGGER.warning("%s: sync of %s failed: %s", self.name, key, err)
            self.queue.add_rate_limited(key)
            await self._set_degraded(err)
        else:
            self.queue.forget(key)
            await self._set_degraded(None)

    async def _set_degraded(self, err: Exception | None) -> None:
        if not self._report_degraded:
            return
        if err is None:
            condition = OperatorCondition(
                type=f"{self.name}{DEGRADED}",
                status=ConditionStatus.FALSE,
                reason="AsExpected",
            )
        else:
            condition = OperatorCondition(
                type=f"{self.name}{DEGRADED}",
                status=ConditionStatus.TRUE,
                reason="SyncError",
                message=str(err),
            )
        try:
            await update_operator_status(self._client, update_condition_fn(condition))
        except (ClusterException, TransientError) as report_err:
            _LOGGER.warning(
                "%s: unable to report degraded status: %s", self.name, report_err
            )
