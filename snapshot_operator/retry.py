"""Retry helpers for optimistic concurrency writes."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .exceptions import ConflictError, TransientError

__all__ = ["Backoff", "DEFAULT_RETRY", "retry_on_conflict"]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Backoff:
    """Bounded backoff for retrying a read-modify-write cycle."""

    steps: int = 5
    """Maximum number of attempts."""

    duration: float = 0.01
    """Initial delay in seconds."""

    factor: float = 1.0
    """Multiplier applied to the delay after every attempt."""

    jitter: float = 0.1
    """Random fraction of the initial delay added to every sleep."""

    def retrying(self) -> AsyncRetrying:
        """Return a retry controller rerunning attempts that conflict."""
        return AsyncRetrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self.steps),
            wait=wait_exponential_jitter(
                initial=self.duration,
                exp_base=self.factor,
                jitter=self.duration * self.jitter,
            ),
            before_sleep=before_sleep_log(_LOGGER, logging.DEBUG),
        )


DEFAULT_RETRY = Backoff()


async def retry_on_conflict(
    fn: Callable[[], Awaitable[T]], backoff: Backoff = DEFAULT_RETRY
) -> T:
    """Run fn, rerunning it from scratch every time it raises a ConflictError.

    fn must perform the whole read-modify-write cycle so that every attempt
    starts from a fresh read. Raises TransientError when the attempts are
    exhausted.
    """
    try:
        return await backoff.retrying()(fn)
    except RetryError as err:
        last = err.last_attempt
        raise TransientError(
            f"Giving up after {last.attempt_number} conflicting attempts: "
            f"{last.exception()}"
        ) from last.exception()
