"""Validator for SnippetsPolicy."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from nginxpolicy import kinds
from nginxpolicy.conditions import Condition, new_policy_invalid
from nginxpolicy.policies.base import GlobalSettings, must_cast, validate_target_ref
from nginxpolicy.policy.models import Policy, Snippet, SnippetsPolicy
from nginxpolicy.validation.field import new_path

logger = logging.getLogger(__name__)

_SUPPORTED_GROUPS = (kinds.GATEWAY_API_GROUP,)
_SUPPORTED_KINDS = (kinds.GATEWAY,)


class SnippetsValidator:
    """Validates SnippetsPolicy target refs and snippet contexts."""

    def validate(self, policy: Policy) -> list[Condition]:
        sp = must_cast(policy, SnippetsPolicy)

        msg = _validate_target_refs(sp) or _validate_snippets(sp.spec.snippets)
        if msg is not None:
            logger.debug("SnippetsPolicy %s is invalid: %s", sp.nsname, msg)
            return [new_policy_invalid(msg)]
        return []

    def validate_global_settings(
        self, policy: Policy, settings: GlobalSettings | None
    ) -> list[Condition]:
        return []

    def conflicts(self, a: Policy, b: Policy) -> bool:
        # Snippets are additive and applied in order; NGINX itself rejects clashing directives.
        must_cast(a, SnippetsPolicy)
        must_cast(b, SnippetsPolicy)
        return False


def _validate_target_refs(sp: SnippetsPolicy) -> str | None:
    path = new_path("spec", "targetRefs")
    seen: set[str] = set()
    for i, ref in enumerate(sp.spec.target_refs):
        msg = validate_target_ref(ref, path.index(i), _SUPPORTED_GROUPS, _SUPPORTED_KINDS)
        if msg is not None:
            return msg
        if ref.name in seen:
            return f'duplicate targetRef name "{ref.name}"'
        seen.add(ref.name)
    return None


def _validate_snippets(snippets: Sequence[Snippet]) -> str | None:
    seen = set()
    for snippet in snippets:
        if snippet.context in seen:
            return f'duplicate context "{snippet.context.value}"'
        seen.add(snippet.context)
    return None
