"""Helpers for reading and writing operator conditions.

Every controller of the operator reports its conditions on the status of the
operator custom resource. That status is shared by all controllers, so it is
only ever written with a read-modify-write cycle guarded by the object's
resourceVersion, see `update_operator_status`.
"""

from collections.abc import Callable, Iterable
import datetime
import logging

from .cluster import ClusterClient
from .manifest import (
    CLUSTER_NAME,
    OPERATOR_KIND,
    ConditionStatus,
    NamedResource,
    OperatorCondition,
    OperatorStatus,
)
from .retry import DEFAULT_RETRY, Backoff, retry_on_conflict

__all__ = [
    "OPERATOR_ID",
    "now",
    "find_condition",
    "set_condition",
    "is_condition_true",
    "is_condition_false",
    "update_condition_fn",
    "update_operator_status",
]

_LOGGER = logging.getLogger(__name__)

OPERATOR_ID = NamedResource(kind=OPERATOR_KIND, namespace=None, name=CLUSTER_NAME)

# Condition type suffixes unioned into the ClusterOperator status.
AVAILABLE = "Available"
PROGRESSING = "Progressing"
DEGRADED = "Degraded"
UPGRADEABLE = "Upgradeable"

UpdateStatusFunc = Callable[[OperatorStatus], None]


def now() -> str:
    """Return the current UTC time as an RFC 3339 string."""
    return (
        datetime.datetime.now(datetime.UTC)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def find_condition(
    conditions: Iterable[OperatorCondition], condition_type: str
) -> OperatorCondition | None:
    """Return the condition of the given type, if present."""
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_condition(
    conditions: list[OperatorCondition], new: OperatorCondition
) -> None:
    """Insert or replace the condition with the same type in place.

    The lastTransitionTime only moves when the status changes.
    """
    existing = find_condition(conditions, new.type)
    if existing is None:
        if not new.last_transition_time:
            new.last_transition_time = now()
        conditions.append(new)
        return
    if existing.status != new.status:
        existing.status = new.status
        existing.last_transition_time = new.last_transition_time or now()
    existing.reason = new.reason
    existing.message = new.message


def is_condition_true(
    conditions: Iterable[OperatorCondition], condition_type: str
) -> bool:
    """Return True if the condition is present with status True."""
    condition = find_condition(conditions, condition_type)
    return condition is not None and condition.status == ConditionStatus.TRUE


def is_condition_false(
    conditions: Iterable[OperatorCondition], condition_type: str
) -> bool:
    """Return True if the condition is present with status False."""
    condition = find_condition(conditions, condition_type)
    return condition is not None and condition.status == ConditionStatus.FALSE


def update_condition_fn(condition: OperatorCondition) -> UpdateStatusFunc:
    """Return an update function setting one condition."""

    def update(status: OperatorStatus) -> None:
        set_condition(
            status.conditions,
            OperatorCondition(
                type=condition.type,
                status=condition.status,
                reason=condition.reason,
                message=condition.message,
            ),
        )

    return update


async def update_operator_status(
    client: ClusterClient,
    *update_funcs: UpdateStatusFunc,
    backoff: Backoff = DEFAULT_RETRY,
) -> OperatorStatus:
    """Apply the update functions to the operator status and write it.

    The whole cycle is retried on a conflict so that an update made by another
    controller between the read and the write is never overwritten. Nothing is
    written when the update functions did not change anything.
    """

    async def attempt() -> OperatorStatus:
        obj = await client.get(OPERATOR_ID)
        status = OperatorStatus.parse_doc(obj)
        original = status.to_dict()
        for update in update_funcs:
            update(status)
        if (updated := status.to_dict()) == original:
            return status
        obj["status"] = {**(obj.get("status") or {}), **updated}
        await client.update_status(obj)
        _LOGGER.debug("Updated operator status: %s", updated)
        return status

    return await retry_on_conflict(attempt, backoff)
