"""Generator for RateLimitPolicy.

``limit_req_zone`` is only valid in the http context while ``limit_req`` may
appear in http or location. A policy that targets a Gateway renders both into
the http file. A policy that targets a Route renders ``limit_req`` into the
location file, and its zone-shadow copy renders only the zones into a
separate ``_internal_http.conf`` file in the http context.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from nginxpolicy.policies.base import TEMPLATE_ENV, GeneratedFile, Generator, of_kind
from nginxpolicy.policy.models import Policy, PolicyRole, RateLimitPolicy

DEFAULT_ZONE_SIZE = "10m"
DEFAULT_RATE = "100r/s"
DEFAULT_KEY = "$binary_remote_addr"

_LIMIT_REQ = (
    "limit_req zone={{ r.zone_name }}"
    "{% if r.burst %} burst={{ r.burst }}{% endif %}"
    "{% if r.no_delay %} nodelay{% endif %}"
    "{% if r.delay %} delay={{ r.delay }}{% endif %};"
)

_SHARED_DIRECTIVES = """{% if s.log_level %}
limit_req_log_level {{ s.log_level }};
{% endif %}
{% if s.reject_code %}
limit_req_status {{ s.reject_code }};
{% endif %}
{% if s.dry_run %}
limit_req_dry_run on;
{% endif %}
"""

_HTTP_TEMPLATE = TEMPLATE_ENV.from_string(
    """
{% for r in s.rules %}
limit_req_zone {{ r.key }} zone={{ r.zone_name }}:{{ r.zone_size }} rate={{ r.rate }};
{% if not s.limit_zone_only %}
"""
    + _LIMIT_REQ
    + """
{% endif %}
{% endfor %}
{% if not s.limit_zone_only %}
"""
    + _SHARED_DIRECTIVES
    + """{% endif %}
"""
)

_LOCATION_TEMPLATE = TEMPLATE_ENV.from_string(
    """
{% for r in s.rules %}
"""
    + _LIMIT_REQ
    + """
{% endfor %}
"""
    + _SHARED_DIRECTIVES
)


@dataclass(frozen=True)
class _Rule:
    zone_name: str
    zone_size: str
    rate: str
    key: str
    delay: int = 0
    burst: int = 0
    no_delay: bool = False


@dataclass(frozen=True)
class _RateLimitSettings:
    rules: list[_Rule] = field(default_factory=list)
    log_level: str = ""
    reject_code: int = 0
    dry_run: bool = False
    # Set for zone-shadow policies: render limit_req_zone and nothing else.
    limit_zone_only: bool = False


def zone_name(namespace: str, name: str, index: int) -> str:
    return f"{namespace}_rl_{name}_rule{index}"


def _settings(rlp: RateLimitPolicy) -> _RateLimitSettings:
    rate_limit = rlp.spec.rate_limit
    limit_zone_only = rlp.role is PolicyRole.ZONE_SHADOW
    if rate_limit is None:
        return _RateLimitSettings(limit_zone_only=limit_zone_only)

    rules: list[_Rule] = []
    if rate_limit.local is not None:
        for i, rule in enumerate(rate_limit.local.rules):
            rules.append(
                _Rule(
                    zone_name=zone_name(rlp.namespace, rlp.name, i),
                    zone_size=rule.zone_size or DEFAULT_ZONE_SIZE,
                    rate=rule.rate or DEFAULT_RATE,
                    key=rule.key or DEFAULT_KEY,
                    delay=rule.delay or 0,
                    burst=rule.burst or 0,
                    no_delay=bool(rule.no_delay),
                )
            )

    return _RateLimitSettings(
        rules=rules,
        log_level=rate_limit.log_level.value if rate_limit.log_level else "",
        reject_code=rate_limit.reject_code or 0,
        dry_run=bool(rate_limit.dry_run),
        limit_zone_only=limit_zone_only,
    )


class RateLimitGenerator(Generator):
    """Renders rate limiting for the http context (Gateway targets) and locations (Route targets)."""

    def generate_for_http(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        files: list[GeneratedFile] = []
        for rlp in of_kind(policies, RateLimitPolicy):
            if rlp.role is PolicyRole.ZONE_SHADOW:
                name = f"RateLimitPolicy_{rlp.namespace}_{rlp.name}_internal_http.conf"
            else:
                name = f"RateLimitPolicy_{rlp.namespace}_{rlp.name}_gateway.conf"
            files.append(GeneratedFile(name=name, content=_HTTP_TEMPLATE.render(s=_settings(rlp))))
        return files

    def generate_for_location(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        files: list[GeneratedFile] = []
        for rlp in of_kind(policies, RateLimitPolicy):
            files.append(
                GeneratedFile(
                    name=f"RateLimitPolicy_{rlp.namespace}_{rlp.name}_route.conf",
                    content=_LOCATION_TEMPLATE.render(s=_settings(rlp)),
                )
            )
        return files
