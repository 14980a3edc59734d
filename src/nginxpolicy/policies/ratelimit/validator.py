"""Validator for RateLimitPolicy."""

from __future__ import annotations

import logging

from nginxpolicy.conditions import Condition, new_policy_invalid
from nginxpolicy.policies.base import GlobalSettings, must_cast
from nginxpolicy.policy.models import Policy, RateLimitPolicy, RateLimitPolicySpec
from nginxpolicy.validation.common import validate_limit_req_key, validate_nginx_rate
from nginxpolicy.validation.field import FieldError, aggregate, invalid, new_path
from nginxpolicy.validation.http import GenericValidator

logger = logging.getLogger(__name__)


class RateLimitValidator:
    """Validates rule values that are rendered verbatim into limit_req directives."""

    def __init__(self, generic: GenericValidator | None = None) -> None:
        self._generic = generic or GenericValidator()

    def validate(self, policy: Policy) -> list[Condition]:
        rlp = must_cast(policy, RateLimitPolicy)

        msg = self._validate_settings(rlp.spec)
        if msg is not None:
            logger.debug("RateLimitPolicy %s is invalid: %s", rlp.nsname, msg)
            return [new_policy_invalid(msg)]
        return []

    def validate_global_settings(
        self, policy: Policy, settings: GlobalSettings | None
    ) -> list[Condition]:
        return []

    def conflicts(self, a: Policy, b: Policy) -> bool:
        rlp_a = must_cast(a, RateLimitPolicy)
        rlp_b = must_cast(b, RateLimitPolicy)
        return _conflicts(rlp_a.spec, rlp_b.spec)

    def _validate_settings(self, spec: RateLimitPolicySpec) -> str | None:
        if spec.rate_limit is None or spec.rate_limit.local is None:
            return None

        errors: list[FieldError] = []
        path = new_path("spec", "rateLimit", "local", "rules")

        for rule in spec.rate_limit.local.rules:
            if rule.zone_size is not None:
                try:
                    self._generic.validate_nginx_size(rule.zone_size)
                except ValueError as exc:
                    errors.append(invalid(path.child("zoneSize"), rule.zone_size, str(exc)))

            if rule.rate:
                try:
                    validate_nginx_rate(rule.rate)
                except ValueError as exc:
                    errors.append(invalid(path.child("rate"), rule.rate, str(exc)))

            if rule.key:
                try:
                    validate_limit_req_key(rule.key)
                except ValueError as exc:
                    errors.append(invalid(path.child("key"), rule.key, str(exc)))

        return aggregate(errors)


def _conflicts(a: RateLimitPolicySpec, b: RateLimitPolicySpec) -> bool:
    if a.rate_limit is None or b.rate_limit is None:
        return False
    return any(
        getattr(a.rate_limit, name) is not None and getattr(b.rate_limit, name) is not None
        for name in ("dry_run", "log_level", "reject_code")
    )
