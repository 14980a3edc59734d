"""Status conditions produced by validation and conflict resolution."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ConditionType(enum.Enum):
    """Condition types reported on a policy's ancestor status."""

    ACCEPTED = "Accepted"


class ConditionStatus(enum.Enum):
    TRUE = "True"
    FALSE = "False"


class PolicyReason(enum.Enum):
    """Why a policy was (or was not) accepted at an ancestor."""

    ACCEPTED = "Accepted"
    INVALID = "Invalid"
    CONFLICTED = "Conflicted"


@dataclass(frozen=True)
class Condition:
    """A single status condition. Immutable once produced."""

    type: ConditionType
    status: ConditionStatus
    reason: PolicyReason
    message: str = ""


def new_policy_accepted() -> Condition:
    return Condition(
        type=ConditionType.ACCEPTED,
        status=ConditionStatus.TRUE,
        reason=PolicyReason.ACCEPTED,
        message="Policy is accepted",
    )


def new_policy_invalid(msg: str) -> Condition:
    return Condition(
        type=ConditionType.ACCEPTED,
        status=ConditionStatus.FALSE,
        reason=PolicyReason.INVALID,
        message=msg,
    )


def new_policy_conflicted(msg: str) -> Condition:
    return Condition(
        type=ConditionType.ACCEPTED,
        status=ConditionStatus.FALSE,
        reason=PolicyReason.CONFLICTED,
        message=msg,
    )


def new_authentication_filter_accepted() -> Condition:
    return Condition(
        type=ConditionType.ACCEPTED,
        status=ConditionStatus.TRUE,
        reason=PolicyReason.ACCEPTED,
        message="The AuthenticationFilter is accepted",
    )


def new_authentication_filter_invalid(msg: str) -> Condition:
    return Condition(
        type=ConditionType.ACCEPTED,
        status=ConditionStatus.FALSE,
        reason=PolicyReason.INVALID,
        message=msg,
    )
