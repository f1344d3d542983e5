"""Union of the per controller conditions into ClusterOperator conditions.

Every controller reports conditions named `<Controller><Type>` on the operator
status. The ClusterOperator publishes one condition per type, computed with a
worst status wins rule:

    - Degraded and Progressing are True if any contributor is True.
    - Upgradeable is False if any contributor is False.
    - Available is False if any contributor is False, or if a required
      contributor is missing or not True.
"""

from collections.abc import Iterable, Sequence

from snapshot_operator.conditions import (
    AVAILABLE,
    DEGRADED,
    PROGRESSING,
    UPGRADEABLE,
    find_condition,
)
from snapshot_operator.manifest import ConditionStatus, OperatorCondition

__all__ = ["union_condition", "union_conditions", "CLUSTER_CONDITION_DEFAULTS"]

AS_EXPECTED = "AsExpected"
MULTIPLE = "MultipleConditionsMatching"

# Healthy status of every ClusterOperator condition type.
CLUSTER_CONDITION_DEFAULTS = {
    AVAILABLE: ConditionStatus.TRUE,
    PROGRESSING: ConditionStatus.FALSE,
    DEGRADED: ConditionStatus.FALSE,
    UPGRADEABLE: ConditionStatus.TRUE,
}


def _unhealthy(default: ConditionStatus) -> ConditionStatus:
    if default == ConditionStatus.TRUE:
        return ConditionStatus.FALSE
    return ConditionStatus.TRUE


def union_condition(
    condition_type: str,
    default: ConditionStatus,
    conditions: Iterable[OperatorCondition],
    required: Sequence[str] = (),
) -> OperatorCondition:
    """Compute one ClusterOperator condition from the operator conditions.

    Args:
        condition_type: The suffix to union, e.g. `Degraded`.
        default: The healthy status, reported when no contributor is unhealthy.
        conditions: All conditions of the operator status.
        required: Contributor condition types that must exist and be healthy.
    """
    bad_status = _unhealthy(default)
    matching = [c for c in conditions if c.type.endswith(condition_type)]
    bad = [c for c in matching if c.status == bad_status]
    for required_type in required:
        contributor = find_condition(matching, required_type)
        if contributor is None:
            bad.append(
                OperatorCondition(
                    type=required_type,
                    status=bad_status,
                    reason="NotReported",
                    message="Condition has not been reported yet",
                )
            )
        elif contributor.status != default and contributor not in bad:
            bad.append(contributor)

    if not bad:
        messages = [f"{c.type}: {c.message}" for c in matching if c.message]
        return OperatorCondition(
            type=condition_type,
            status=default,
            reason=AS_EXPECTED,
            message="\n".join(messages) or None,
        )

    if len(bad) == 1:
        prefix = bad[0].type.removesuffix(condition_type)
        reason = f"{prefix}_{bad[0].reason or 'Unknown'}"
    else:
        reason = MULTIPLE
    messages = [f"{c.type}: {c.message or c.reason or c.status}" for c in bad]
    return OperatorCondition(
        type=condition_type,
        status=bad_status,
        reason=reason,
        message="\n".join(messages),
    )


def union_conditions(
    conditions: Sequence[OperatorCondition],
    required_available: Sequence[str] = (),
) -> list[OperatorCondition]:
    """Compute all four ClusterOperator conditions."""
    return [
        union_condition(
            condition_type,
            default,
            conditions,
            required_available if condition_type == AVAILABLE else (),
        )
        for condition_type, default in CLUSTER_CONDITION_DEFAULTS.items()
    ]
