"""Validators grouped by the NGINX directive family their values land in."""

from __future__ import annotations

from nginxpolicy.validation.common import (
    validate_escaped_string_no_var_expansion,
    validate_nginx_size,
)

_REALM_EXAMPLES = ("Restricted", "My \\\"quoted\\\" realm")


class GenericValidator:
    """Validates values shared by several policy kinds."""

    def validate_nginx_size(self, size: str) -> None:
        validate_nginx_size(size)


class HTTPAuthValidator:
    """Values rendered into ``auth_basic``."""

    def validate_realm(self, realm: str) -> None:
        validate_escaped_string_no_var_expansion(realm, _REALM_EXAMPLES)
