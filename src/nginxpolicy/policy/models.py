"""Policy data models — immutable dataclasses mirroring the attached-policy CRDs."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import ClassVar

from nginxpolicy import kinds
from nginxpolicy.conditions import Condition
from nginxpolicy.objects import NamespacedName, ObjectMeta


class NginxContext(enum.Enum):
    """NGINX configuration scope a snippet is placed in."""

    MAIN = "main"
    HTTP = "http"
    HTTP_SERVER = "http.server"
    HTTP_SERVER_LOCATION = "http.server.location"


class PolicyRole(enum.Enum):
    """Whether a policy came from the user or was synthesized for zone declaration."""

    USER_DEFINED = "user-defined"
    ZONE_SHADOW = "zone-shadow"


class RateLimitLogLevel(enum.Enum):
    INFO = "info"
    NOTICE = "notice"
    WARN = "warn"
    ERROR = "error"


class AuthType(enum.Enum):
    BASIC = "Basic"


@dataclass(frozen=True)
class TargetRef:
    """Identifies the Gateway, Route or Service a policy attaches to."""

    name: str
    kind: str = kinds.GATEWAY
    group: str = kinds.GATEWAY_API_GROUP


@dataclass(frozen=True)
class PolicyAncestorStatus:
    """Acceptance state of a policy with respect to one attachment point."""

    ancestor_ref: TargetRef
    controller_name: str = ""
    conditions: tuple[Condition, ...] = ()


@dataclass(frozen=True)
class PolicyStatus:
    ancestors: tuple[PolicyAncestorStatus, ...] = ()


class _Object:
    """Accessors shared by every namespaced object model."""

    kind: ClassVar[str]
    metadata: ObjectMeta

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def nsname(self) -> NamespacedName:
        return self.metadata.nsname


class _AttachedPolicy(_Object):
    """Capabilities every attached policy has: target refs and a status."""

    spec: ProxySettingsPolicySpec | RateLimitPolicySpec | SnippetsPolicySpec
    status: PolicyStatus

    @property
    def target_refs(self) -> tuple[TargetRef, ...]:
        return self.spec.target_refs


# ---------------------------------------------------------------------------
# ProxySettingsPolicy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProxyBuffers:
    """Number and size of the buffers used for reading a proxied response."""

    number: int
    size: str


@dataclass(frozen=True)
class ProxyBuffering:
    disable: bool | None = None
    buffer_size: str | None = None
    buffers: ProxyBuffers | None = None
    busy_buffers_size: str | None = None


@dataclass(frozen=True)
class ProxySettingsPolicySpec:
    target_refs: tuple[TargetRef, ...] = ()
    buffering: ProxyBuffering | None = None


@dataclass(frozen=True)
class ProxySettingsPolicy(_AttachedPolicy):
    kind: ClassVar[str] = kinds.PROXY_SETTINGS_POLICY

    metadata: ObjectMeta
    spec: ProxySettingsPolicySpec = field(default_factory=ProxySettingsPolicySpec)
    status: PolicyStatus = field(default_factory=PolicyStatus)


# ---------------------------------------------------------------------------
# RateLimitPolicy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitRule:
    """A single limit_req_zone/limit_req pair."""

    rate: str = ""
    key: str = ""
    zone_size: str | None = None
    delay: int | None = None
    no_delay: bool | None = None
    burst: int | None = None


@dataclass(frozen=True)
class LocalRateLimit:
    rules: tuple[RateLimitRule, ...] = ()


@dataclass(frozen=True)
class RateLimit:
    local: LocalRateLimit | None = None
    dry_run: bool | None = None
    log_level: RateLimitLogLevel | None = None
    reject_code: int | None = None


@dataclass(frozen=True)
class RateLimitPolicySpec:
    target_refs: tuple[TargetRef, ...] = ()
    rate_limit: RateLimit | None = None


@dataclass(frozen=True)
class RateLimitPolicy(_AttachedPolicy):
    kind: ClassVar[str] = kinds.RATE_LIMIT_POLICY

    metadata: ObjectMeta
    spec: RateLimitPolicySpec = field(default_factory=RateLimitPolicySpec)
    status: PolicyStatus = field(default_factory=PolicyStatus)
    role: PolicyRole = PolicyRole.USER_DEFINED


def as_zone_shadow(policy: RateLimitPolicy) -> RateLimitPolicy:
    """Return a copy of a route-targeted policy that only declares its zones."""
    return dataclasses.replace(policy, role=PolicyRole.ZONE_SHADOW)


# ---------------------------------------------------------------------------
# SnippetsPolicy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Snippet:
    context: NginxContext
    value: str


@dataclass(frozen=True)
class SnippetsPolicySpec:
    target_refs: tuple[TargetRef, ...] = ()
    snippets: tuple[Snippet, ...] = ()


@dataclass(frozen=True)
class SnippetsPolicy(_AttachedPolicy):
    kind: ClassVar[str] = kinds.SNIPPETS_POLICY

    metadata: ObjectMeta
    spec: SnippetsPolicySpec = field(default_factory=SnippetsPolicySpec)
    status: PolicyStatus = field(default_factory=PolicyStatus)


Policy = ProxySettingsPolicy | RateLimitPolicy | SnippetsPolicy

# ---------------------------------------------------------------------------
# AuthenticationFilter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocalObjectReference:
    name: str


@dataclass(frozen=True)
class BasicAuth:
    secret_ref: LocalObjectReference
    realm: str


@dataclass(frozen=True)
class AuthenticationFilterSpec:
    type: AuthType = AuthType.BASIC
    basic: BasicAuth | None = None


@dataclass(frozen=True)
class AuthenticationFilter(_Object):
    """Route filter that enables request authentication."""

    kind: ClassVar[str] = kinds.AUTHENTICATION_FILTER

    metadata: ObjectMeta
    spec: AuthenticationFilterSpec = field(default_factory=AuthenticationFilterSpec)


@dataclass(frozen=True, order=True)
class PolicyKey:
    """Identifies a policy across kinds."""

    kind: str
    nsname: NamespacedName

    def __str__(self) -> str:
        return f"{self.kind} {self.nsname}"


def policy_key(policy: Policy) -> PolicyKey:
    return PolicyKey(kind=policy.kind, nsname=policy.nsname)


@dataclass(frozen=True, order=True)
class PolicyTarget:
    """A target reference resolved in the namespace of the policy that holds it."""

    namespace: str
    group: str
    kind: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind} {self.namespace}/{self.name}"


def policy_targets(policy: Policy) -> tuple[PolicyTarget, ...]:
    """Targets of *policy*; targetRefs are local, so they share its namespace."""
    return tuple(
        PolicyTarget(namespace=policy.namespace, group=ref.group, kind=ref.kind, name=ref.name)
        for ref in policy.target_refs
    )
