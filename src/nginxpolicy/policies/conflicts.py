"""Turn pairwise conflicts into accepted/rejected sets using an explicit merge strategy."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from nginxpolicy.conditions import Condition, new_policy_conflicted
from nginxpolicy.policies.base import Validator
from nginxpolicy.policy.models import Policy

logger = logging.getLogger(__name__)


class MergeStrategy(enum.Enum):
    """Which of two conflicting policies wins."""

    # Oldest first, ties broken by namespace then name (Gateway API conflict resolution).
    CREATION_TIMESTAMP = "creation-timestamp"
    # First discovered wins; the caller's order is taken as-is.
    DISCOVERY_ORDER = "discovery-order"


@dataclass
class ConflictResolution:
    """Outcome of merging policies of one kind attached to one target."""

    accepted: list[Policy] = field(default_factory=list)
    rejected: list[tuple[Policy, Condition]] = field(default_factory=list)


def order_policies(policies: Sequence[Policy], strategy: MergeStrategy) -> list[Policy]:
    if strategy is MergeStrategy.CREATION_TIMESTAMP:
        return sorted(
            policies,
            key=lambda p: (p.metadata.creation_timestamp, p.namespace, p.name),
        )
    return list(policies)


def resolve_conflicts(
    policies: Sequence[Policy],
    validator: Validator,
    strategy: MergeStrategy = MergeStrategy.CREATION_TIMESTAMP,
) -> ConflictResolution:
    """Accept policies in strategy order, rejecting any that conflict with one already accepted.

    All policies must be of the kind ``validator`` handles and must already
    have passed validation.
    """
    result = ConflictResolution()
    for candidate in order_policies(policies, strategy):
        winner = next(
            (p for p in result.accepted if validator.conflicts(p, candidate)),
            None,
        )
        if winner is None:
            result.accepted.append(candidate)
            continue

        msg = f"Conflicts with {winner.kind} {winner.nsname}"
        logger.debug("%s %s rejected: %s", candidate.kind, candidate.nsname, msg)
        result.rejected.append((candidate, new_policy_conflicted(msg)))
    return result
