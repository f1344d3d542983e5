"""Building blocks for the operator control loops.

This package provides the deduplicating work queue and the generic controller
runner that every reconcile loop of the operator is built from.
"""

from .controller import DEFAULT_KEY, Controller, KeyFunc, Runnable, SyncFunc
from .queue import ExponentialRateLimiter, WorkQueue

__all__ = [
    "Controller",
    "DEFAULT_KEY",
    "ExponentialRateLimiter",
    "KeyFunc",
    "Runnable",
    "SyncFunc",
    "WorkQueue",
]
