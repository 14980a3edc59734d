"""Load policies, filters and referenced resources from Kubernetes YAML manifests."""

from __future__ import annotations

import base64
import binascii
import datetime
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from nginxpolicy import kinds
from nginxpolicy.objects import ConfigMap, ObjectMeta, Secret
from nginxpolicy.policy.models import (
    AuthenticationFilter,
    AuthenticationFilterSpec,
    AuthType,
    BasicAuth,
    LocalObjectReference,
    LocalRateLimit,
    NginxContext,
    Policy,
    ProxyBuffering,
    ProxyBuffers,
    ProxySettingsPolicy,
    ProxySettingsPolicySpec,
    RateLimit,
    RateLimitLogLevel,
    RateLimitPolicy,
    RateLimitPolicySpec,
    RateLimitRule,
    Snippet,
    SnippetsPolicy,
    SnippetsPolicySpec,
    TargetRef,
)
from nginxpolicy.resolver import ResourceKey, ResourceType

logger = logging.getLogger(__name__)

_MANIFEST_SUFFIXES = (".yaml", ".yml")


class ManifestError(ValueError):
    """A manifest document could not be turned into a model object."""


@dataclass
class Manifests:
    """Everything found in a set of manifest documents."""

    policies: list[Policy] = field(default_factory=list)
    authentication_filters: list[AuthenticationFilter] = field(default_factory=list)
    resources: dict[ResourceKey, Secret | ConfigMap] = field(default_factory=dict)

    def extend(self, other: Manifests) -> None:
        self.policies.extend(other.policies)
        self.authentication_filters.extend(other.authentication_filters)
        self.resources.update(other.resources)


def load_manifests(path: str | Path) -> Manifests:
    """Load a manifest file, or every ``*.yaml``/``*.yml`` file in a directory."""
    path = Path(path)
    if path.is_dir():
        result = Manifests()
        for child in sorted(path.iterdir()):
            if child.is_file() and child.suffix in _MANIFEST_SUFFIXES:
                result.extend(load_manifests(child))
        return result

    text = path.read_text(encoding="utf-8")
    return load_manifests_from_string(text, source=str(path))


def load_manifests_from_string(text: str, source: str = "<string>") -> Manifests:
    """Parse a multi-document YAML string."""
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as exc:
        raise ManifestError(f"{source}: invalid YAML: {exc}") from exc

    result = Manifests()
    for index, doc in enumerate(documents):
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ManifestError(f"{source} document {index}: manifest must be a mapping")

        kind = doc.get("kind")
        try:
            _add_document(result, kind, doc)
        except ManifestError as exc:
            raise ManifestError(f"{source} document {index} ({kind}): {exc}") from exc
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ManifestError(
                f"{source} document {index} ({kind}): {type(exc).__name__}: {exc}"
            ) from exc

    logger.debug(
        "Loaded %d policies, %d filters, %d resources from %s",
        len(result.policies),
        len(result.authentication_filters),
        len(result.resources),
        source,
    )
    return result


def _add_document(result: Manifests, kind: str | None, doc: dict) -> None:
    if kind == kinds.PROXY_SETTINGS_POLICY:
        result.policies.append(_build_proxy_settings_policy(doc))
    elif kind == kinds.RATE_LIMIT_POLICY:
        result.policies.append(_build_rate_limit_policy(doc))
    elif kind == kinds.SNIPPETS_POLICY:
        result.policies.append(_build_snippets_policy(doc))
    elif kind == kinds.AUTHENTICATION_FILTER:
        result.authentication_filters.append(_build_authentication_filter(doc))
    elif kind == kinds.SECRET:
        secret = _build_secret(doc)
        result.resources[ResourceKey(ResourceType.SECRET, secret.metadata.nsname)] = secret
    elif kind == kinds.CONFIG_MAP:
        cm = _build_config_map(doc)
        result.resources[ResourceKey(ResourceType.CONFIG_MAP, cm.metadata.nsname)] = cm
    else:
        logger.debug("Skipping manifest of unsupported kind %r", kind)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _parse_timestamp(value: object) -> float:
    if value is None:
        return 0.0
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return _parse_timestamp(datetime.datetime.fromisoformat(text))
    raise ManifestError(f"metadata.creationTimestamp: unsupported value {value!r}")


def _parse_metadata(doc: dict) -> ObjectMeta:
    meta = doc.get("metadata")
    if not isinstance(meta, dict) or not meta.get("name"):
        raise ManifestError("metadata.name is required")
    return ObjectMeta(
        name=meta["name"],
        namespace=meta.get("namespace") or "default",
        creation_timestamp=_parse_timestamp(meta.get("creationTimestamp")),
        generation=int(meta.get("generation", 1)),
    )


def _spec(doc: dict) -> dict:
    spec = doc.get("spec") or {}
    if not isinstance(spec, dict):
        raise ManifestError("spec must be a mapping")
    return spec


def _parse_target_refs(spec: dict) -> tuple[TargetRef, ...]:
    refs_data = spec.get("targetRefs") or []
    refs: list[TargetRef] = []
    for r in refs_data:
        if not isinstance(r, dict):
            raise ManifestError("spec.targetRefs entries must be mappings")
        refs.append(
            TargetRef(
                name=r["name"],
                kind=r.get("kind", kinds.GATEWAY),
                group=r.get("group", kinds.GATEWAY_API_GROUP),
            )
        )
    return tuple(refs)


def _optional_int(value: object) -> int | None:
    return None if value is None else int(value)


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


def _build_proxy_settings_policy(doc: dict) -> ProxySettingsPolicy:
    spec = _spec(doc)

    buffering = None
    buffering_data = spec.get("buffering")
    if buffering_data is not None:
        buffers = None
        buffers_data = buffering_data.get("buffers")
        if buffers_data is not None:
            buffers = ProxyBuffers(number=int(buffers_data["number"]), size=str(buffers_data["size"]))
        buffering = ProxyBuffering(
            disable=buffering_data.get("disable"),
            buffer_size=_optional_str(buffering_data.get("bufferSize")),
            buffers=buffers,
            busy_buffers_size=_optional_str(buffering_data.get("busyBuffersSize")),
        )

    return ProxySettingsPolicy(
        metadata=_parse_metadata(doc),
        spec=ProxySettingsPolicySpec(target_refs=_parse_target_refs(spec), buffering=buffering),
    )


def _optional_str(value: object) -> str | None:
    # YAML turns a bare 1024 into an int; sizes are strings.
    return None if value is None else str(value)


def _build_rate_limit_policy(doc: dict) -> RateLimitPolicy:
    spec = _spec(doc)

    rate_limit = None
    rl_data = spec.get("rateLimit")
    if rl_data is not None:
        local = None
        local_data = rl_data.get("local")
        if local_data is not None:
            local = LocalRateLimit(
                rules=tuple(_parse_rate_limit_rule(r) for r in local_data.get("rules") or [])
            )
        log_level = rl_data.get("logLevel")
        rate_limit = RateLimit(
            local=local,
            dry_run=rl_data.get("dryRun"),
            log_level=RateLimitLogLevel(log_level) if log_level is not None else None,
            reject_code=_optional_int(rl_data.get("rejectCode")),
        )

    return RateLimitPolicy(
        metadata=_parse_metadata(doc),
        spec=RateLimitPolicySpec(target_refs=_parse_target_refs(spec), rate_limit=rate_limit),
    )


def _parse_rate_limit_rule(r: dict) -> RateLimitRule:
    return RateLimitRule(
        rate=str(r.get("rate", "")),
        key=str(r.get("key", "")),
        zone_size=_optional_str(r.get("zoneSize")),
        delay=_optional_int(r.get("delay")),
        no_delay=r.get("noDelay"),
        burst=_optional_int(r.get("burst")),
    )


def _build_snippets_policy(doc: dict) -> SnippetsPolicy:
    spec = _spec(doc)
    snippets = tuple(
        Snippet(context=NginxContext(s["context"]), value=str(s["value"]))
        for s in spec.get("snippets") or []
    )
    return SnippetsPolicy(
        metadata=_parse_metadata(doc),
        spec=SnippetsPolicySpec(target_refs=_parse_target_refs(spec), snippets=snippets),
    )


def _build_authentication_filter(doc: dict) -> AuthenticationFilter:
    spec = _spec(doc)

    basic = None
    basic_data = spec.get("basic")
    if basic_data is not None:
        basic = BasicAuth(
            secret_ref=LocalObjectReference(name=basic_data["secretRef"]["name"]),
            realm=str(basic_data.get("realm", "")),
        )

    return AuthenticationFilter(
        metadata=_parse_metadata(doc),
        spec=AuthenticationFilterSpec(type=AuthType(spec.get("type", "Basic")), basic=basic),
    )


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def _decode_b64_map(data: dict, field_name: str) -> dict[str, bytes]:
    decoded: dict[str, bytes] = {}
    for key, value in (data or {}).items():
        try:
            decoded[key] = base64.b64decode("".join(str(value).split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ManifestError(f"{field_name}.{key}: invalid base64: {exc}") from exc
    return decoded


def _build_secret(doc: dict) -> Secret:
    data = _decode_b64_map(doc.get("data"), "data")
    for key, value in (doc.get("stringData") or {}).items():
        data[key] = str(value).encode("utf-8")
    return Secret(
        metadata=_parse_metadata(doc),
        type=doc.get("type", "Opaque"),
        data=data,
    )


def _build_config_map(doc: dict) -> ConfigMap:
    return ConfigMap(
        metadata=_parse_metadata(doc),
        data={k: str(v) for k, v in (doc.get("data") or {}).items()},
        binary_data=_decode_b64_map(doc.get("binaryData"), "binaryData"),
    )
