"""Policy manager — dispatches each policy to its kind's validator and generators."""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from nginxpolicy import kinds
from nginxpolicy.conditions import Condition
from nginxpolicy.policies.base import GeneratedFile, Generator, GlobalSettings, Validator
from nginxpolicy.policies.conflicts import MergeStrategy, resolve_conflicts
from nginxpolicy.policies.proxysettings import ProxySettingsGenerator, ProxySettingsValidator
from nginxpolicy.policies.ratelimit import RateLimitGenerator, RateLimitValidator
from nginxpolicy.policies.snippets import SnippetsGenerator, SnippetsValidator
from nginxpolicy.policy.models import (
    Policy,
    PolicyKey,
    PolicyTarget,
    ProxySettingsPolicy,
    RateLimitPolicy,
    SnippetsPolicy,
    as_zone_shadow,
    policy_key,
    policy_targets,
)
from nginxpolicy.validation.http import GenericValidator

logger = logging.getLogger(__name__)


class Placement(enum.Enum):
    """Where in the NGINX configuration a set of generated files is included."""

    MAIN = "main"
    HTTP = "http"
    SERVER = "server"
    LOCATION = "location"
    INTERNAL_LOCATION = "internal-location"


def default_validators(generic: GenericValidator | None = None) -> dict[type, Validator]:
    generic = generic or GenericValidator()
    return {
        ProxySettingsPolicy: ProxySettingsValidator(generic),
        RateLimitPolicy: RateLimitValidator(generic),
        SnippetsPolicy: SnippetsValidator(),
    }


def default_generators() -> list[Generator]:
    return [ProxySettingsGenerator(), RateLimitGenerator(), SnippetsGenerator()]


@dataclass
class PolicyEvaluation:
    """Validation and conflict outcome for a batch of policies attached to one target."""

    accepted: list[Policy] = field(default_factory=list)
    conditions: dict[PolicyKey, list[Condition]] = field(default_factory=dict)

    def is_accepted(self, policy: Policy) -> bool:
        return any(p is policy for p in self.accepted)


class PolicyManager:
    """Composite validator and generator over every supported policy kind.

    Validation and conflict checks are routed by the policy's concrete type;
    a policy of an unregistered type is a wiring bug and raises ``TypeError``.
    Generation fans the whole list out to every generator, each of which
    ignores kinds it does not own.
    """

    def __init__(
        self,
        validators: Mapping[type, Validator] | None = None,
        generators: Sequence[Generator] | None = None,
        merge_strategy: MergeStrategy = MergeStrategy.CREATION_TIMESTAMP,
    ) -> None:
        self._validators = dict(validators) if validators is not None else default_validators()
        self._generators = list(generators) if generators is not None else default_generators()
        self.merge_strategy = merge_strategy

    def _validator_for(self, policy: object) -> Validator:
        validator = self._validators.get(type(policy))
        if validator is None:
            raise TypeError(f"no validator registered for {type(policy).__name__}")
        return validator

    def validate(self, policy: Policy) -> list[Condition]:
        return self._validator_for(policy).validate(policy)

    def validate_global_settings(
        self, policy: Policy, settings: GlobalSettings | None
    ) -> list[Condition]:
        return self._validator_for(policy).validate_global_settings(policy, settings)

    def conflicts(self, a: Policy, b: Policy) -> bool:
        if type(a) is not type(b):
            raise TypeError(
                f"cannot compare {type(a).__name__} with {type(b).__name__} for conflicts"
            )
        return self._validator_for(a).conflicts(a, b)

    def evaluate(
        self,
        policies: Sequence[Policy],
        settings: GlobalSettings | None = None,
    ) -> PolicyEvaluation:
        """Validate policies attached to a single target and drop the conflicting ones."""
        result = PolicyEvaluation()
        valid_by_kind: dict[type, list[Policy]] = {}

        for policy in policies:
            key = policy_key(policy)
            conds = self.validate(policy) or self.validate_global_settings(policy, settings)
            if conds:
                result.conditions[key] = conds
                continue
            valid_by_kind.setdefault(type(policy), []).append(policy)

        for kind, candidates in valid_by_kind.items():
            resolution = resolve_conflicts(
                candidates, self._validators[kind], self.merge_strategy
            )
            result.accepted.extend(resolution.accepted)
            for policy, cond in resolution.rejected:
                result.conditions[policy_key(policy)] = [cond]

        logger.debug(
            "Evaluated %d policies: %d accepted, %d rejected",
            len(policies),
            len(result.accepted),
            len(result.conditions),
        )
        return result

    def evaluate_by_target(
        self,
        policies: Sequence[Policy],
        settings: GlobalSettings | None = None,
    ) -> dict[PolicyTarget, PolicyEvaluation]:
        """Group policies by each target they reference and evaluate every group.

        Same-named targets in different namespaces are different objects, so
        policies in ``team-a`` and ``team-b`` that both name Gateway ``gateway``
        never compete with each other.
        """
        groups: dict[PolicyTarget, list[Policy]] = {}
        for policy in policies:
            for target in policy_targets(policy):
                groups.setdefault(target, []).append(policy)
        return {target: self.evaluate(group, settings) for target, group in groups.items()}

    def generate(self, placement: Placement, policies: Sequence[Policy]) -> list[GeneratedFile]:
        files: list[GeneratedFile] = []
        for generator in self._generators:
            files.extend(_render(generator, placement, policies))
        return files

    def generate_for_main(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return self.generate(Placement.MAIN, policies)

    def generate_for_http(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return self.generate(Placement.HTTP, policies)

    def generate_for_server(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return self.generate(Placement.SERVER, policies)

    def generate_for_location(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return self.generate(Placement.LOCATION, policies)

    def generate_for_internal_location(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return self.generate(Placement.INTERNAL_LOCATION, policies)

    def generate_all(
        self, evaluations: Mapping[PolicyTarget, PolicyEvaluation]
    ) -> dict[Placement, list[GeneratedFile]]:
        """Render every accepted policy into the contexts its attachment point implies.

        Gateway-attached policies render at main, http and server level. Route-attached
        policies render in locations; a Route-attached RateLimitPolicy also gets a
        zone-shadow copy in http, since ``limit_req_zone`` cannot live in a location.
        SnippetsPolicies only attach to Gateways, but their location snippets apply
        to every location.
        """
        gateway: dict[PolicyKey, Policy] = {}
        route: dict[PolicyKey, Policy] = {}
        for target, evaluation in evaluations.items():
            if target.kind == kinds.GATEWAY:
                bucket = gateway
            elif target.kind in kinds.ROUTE_KINDS:
                bucket = route
            else:
                logger.debug("Not generating for policies attached to %s", target)
                continue
            for policy in evaluation.accepted:
                bucket.setdefault(policy_key(policy), policy)

        shadows = [
            as_zone_shadow(p)
            for key, p in route.items()
            if isinstance(p, RateLimitPolicy) and key not in gateway
        ]
        gateway_policies = list(gateway.values())
        location_policies = list(route.values()) + [
            p for p in gateway_policies if isinstance(p, SnippetsPolicy)
        ]

        return {
            Placement.MAIN: self.generate_for_main(gateway_policies),
            Placement.HTTP: self.generate_for_http(gateway_policies + shadows),
            Placement.SERVER: self.generate_for_server(gateway_policies),
            Placement.LOCATION: self.generate_for_location(location_policies),
            Placement.INTERNAL_LOCATION: self.generate_for_internal_location(location_policies),
        }


def _render(
    generator: Generator, placement: Placement, policies: Sequence[Policy]
) -> list[GeneratedFile]:
    if placement is Placement.MAIN:
        return generator.generate_for_main(policies)
    if placement is Placement.HTTP:
        return generator.generate_for_http(policies)
    if placement is Placement.SERVER:
        return generator.generate_for_server(policies)
    if placement is Placement.LOCATION:
        return generator.generate_for_location(policies)
    return generator.generate_for_internal_location(policies)
