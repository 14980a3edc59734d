"""Contracts shared by every policy kind: validators, generators, generated files."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

import jinja2

from nginxpolicy.conditions import Condition
from nginxpolicy.policy.models import Policy, TargetRef
from nginxpolicy.validation.field import FieldPath

T = TypeVar("T")

# Templates render plain NGINX text: no HTML escaping, missing values are bugs.
TEMPLATE_ENV = jinja2.Environment(
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=jinja2.StrictUndefined,
)


@dataclass(frozen=True)
class GeneratedFile:
    """A named configuration fragment included by the main NGINX config."""

    name: str
    content: str


@dataclass(frozen=True)
class GlobalSettings:
    """Settings from the NginxProxy resource that some policies depend on.

    ProxySettings, RateLimit and Snippets policies accept regardless of these
    values; the fields are the inputs that NginxProxy-dependent kinds check.
    """

    nginx_proxy_valid: bool = True
    telemetry_enabled: bool = False
    plus: bool = False


class Validator(Protocol):
    """Validation contract implemented once per policy kind."""

    def validate(self, policy: Policy) -> list[Condition]:
        """Return an empty list when the policy is accepted."""
        ...

    def validate_global_settings(
        self, policy: Policy, settings: GlobalSettings | None
    ) -> list[Condition]:
        ...

    def conflicts(self, a: Policy, b: Policy) -> bool:
        """Whether two policies of this kind cannot both apply to one target."""
        ...


class Generator:
    """Renders policies for each NGINX context. Contexts a kind does not use render nothing."""

    def generate_for_main(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return []

    def generate_for_http(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return []

    def generate_for_server(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return []

    def generate_for_location(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return []

    def generate_for_internal_location(
        self, policies: Sequence[Policy]
    ) -> list[GeneratedFile]:
        return []


def must_cast(obj: object, expected: type[T]) -> T:
    """Return ``obj`` if it is an ``expected`` instance, else fail loudly.

    A mismatch means the caller dispatched a policy to the wrong kind's
    validator, which is a wiring bug rather than bad user input.
    """
    if not isinstance(obj, expected):
        raise TypeError(f"expected {expected.__name__}, got {type(obj).__name__}")
    return obj


def of_kind(policies: Iterable[object], expected: type[T]) -> list[T]:
    """Filter a heterogeneous policy list down to one kind."""
    return [p for p in policies if isinstance(p, expected)]


def validate_target_ref(
    ref: TargetRef,
    path: FieldPath,
    groups: Sequence[str],
    kinds: Sequence[str],
) -> str | None:
    """Return an error message when a target ref names an unsupported group or kind."""
    if ref.group not in groups:
        supported = ", ".join(f'"{g}"' for g in groups)
        return (
            f'{path.child("group")}: Unsupported value: "{ref.group}": '
            f"supported values: {supported}"
        )
    if ref.kind not in kinds:
        supported = ", ".join(f'"{k}"' for k in kinds)
        return (
            f'{path.child("kind")}: Unsupported value: "{ref.kind}": '
            f"supported values: {supported}"
        )
    return None
