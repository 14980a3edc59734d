"""AuthenticationFilter processing and ``auth_basic`` rendering."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from nginxpolicy.conditions import Condition, new_authentication_filter_invalid
from nginxpolicy.objects import NamespacedName
from nginxpolicy.policies.base import TEMPLATE_ENV
from nginxpolicy.policy.models import AuthenticationFilter, AuthType
from nginxpolicy.resolver import ResourceResolver, ResourceType
from nginxpolicy.validation.field import FieldError, aggregate, invalid, new_path
from nginxpolicy.validation.http import HTTPAuthValidator

logger = logging.getLogger(__name__)

SECRETS_DIR = "/etc/nginx/secrets"

_BASIC_AUTH_TEMPLATE = TEMPLATE_ENV.from_string(
    """auth_basic "{{ realm }}";
auth_basic_user_file {{ user_file }};
"""
)


@dataclass
class ProcessedAuthenticationFilter:
    """An AuthenticationFilter together with the outcome of validating it."""

    source: AuthenticationFilter
    conditions: list[Condition] = field(default_factory=list)
    valid: bool = False


def process_authentication_filters(
    filters: Iterable[AuthenticationFilter],
    resolver: ResourceResolver,
    http_validator: HTTPAuthValidator | None = None,
) -> dict[NamespacedName, ProcessedAuthenticationFilter]:
    """Validate every filter, resolving the Secrets they reference."""
    http_validator = http_validator or HTTPAuthValidator()
    processed: dict[NamespacedName, ProcessedAuthenticationFilter] = {}

    for af in filters:
        msg = _validate(af, resolver, http_validator)
        if msg is not None:
            logger.debug("AuthenticationFilter %s is invalid: %s", af.nsname, msg)
            processed[af.nsname] = ProcessedAuthenticationFilter(
                source=af,
                conditions=[new_authentication_filter_invalid(msg)],
                valid=False,
            )
            continue
        processed[af.nsname] = ProcessedAuthenticationFilter(source=af, valid=True)

    return processed


def _validate(
    af: AuthenticationFilter,
    resolver: ResourceResolver,
    http_validator: HTTPAuthValidator,
) -> str | None:
    errors: list[FieldError] = []

    if af.spec.type is AuthType.BASIC:
        basic = af.spec.basic
        if basic is None:
            errors.append(
                invalid(new_path("spec", "basic"), None, "basic settings are required for type Basic")
            )
            return aggregate(errors)

        secret = NamespacedName(namespace=af.namespace, name=basic.secret_ref.name)
        err = resolver.resolve(ResourceType.SECRET, secret)
        if err is not None:
            errors.append(invalid(new_path("spec.basic.secretRef"), basic.secret_ref.name, str(err)))

        try:
            http_validator.validate_realm(basic.realm)
        except ValueError as exc:
            errors.append(invalid(new_path("spec", "basic", "realm"), basic.realm, str(exc)))

    return aggregate(errors)


def user_file_path(af: AuthenticationFilter) -> str:
    """Where the htpasswd data of a Basic filter's Secret is written on the data plane."""
    if af.spec.basic is None:
        raise ValueError(f"AuthenticationFilter {af.nsname} has no basic settings")
    return f"{SECRETS_DIR}/{af.namespace}_{af.spec.basic.secret_ref.name}"


def generate_basic_auth(af: AuthenticationFilter) -> str:
    """Render the ``auth_basic`` directives for a valid Basic filter."""
    if af.spec.basic is None:
        raise ValueError(f"AuthenticationFilter {af.nsname} has no basic settings")
    return _BASIC_AUTH_TEMPLATE.render(realm=af.spec.basic.realm, user_file=user_file_path(af))
