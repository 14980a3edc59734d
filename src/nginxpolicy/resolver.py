"""Validated, memoizing cache over the Secrets and ConfigMaps that policies reference.

Each (resource type, namespaced name) is validated at most once. Later
lookups return the stored outcome, including the stored error, until the key
is explicitly invalidated. Validation failures never raise: the error is kept
next to the source object so the caller can decide what to reject.
"""

from __future__ import annotations

import base64
import binascii
import enum
import logging
import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from nginxpolicy import kinds
from nginxpolicy.objects import (
    AUTH_KEY,
    CA_KEY,
    SECRET_TYPE_HTPASSWD,
    SECRET_TYPE_TLS,
    TLS_CERT_KEY,
    TLS_PRIVATE_KEY_KEY,
    ConfigMap,
    NamespacedName,
    Secret,
)

logger = logging.getLogger(__name__)


class ResourceType(enum.Enum):
    SECRET = kinds.SECRET
    CONFIG_MAP = kinds.CONFIG_MAP


@dataclass(frozen=True)
class ResourceKey:
    resource_type: ResourceType
    namespaced_name: NamespacedName


class ResolutionError(Exception):
    """Why a referenced resource cannot be used. Stored and returned, not raised."""


@dataclass(frozen=True)
class Certificate:
    """Raw certificate material handed to the data plane."""

    tls_cert: bytes = b""
    tls_private_key: bytes = b""
    ca_cert: bytes = b""


@dataclass(frozen=True)
class CertificateBundle:
    """Certificate data together with the object it came from."""

    name: NamespacedName
    kind: str
    cert: Certificate


@dataclass(frozen=True)
class ResolvedEntry:
    """Outcome of resolving one key. ``source`` is None when the object does not exist."""

    source: Secret | ConfigMap | None
    cert_bundle: CertificateBundle | None = None
    error: ResolutionError | None = None


# ---------------------------------------------------------------------------
# Certificate validation
# ---------------------------------------------------------------------------

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n(.*?)-----END \1-----",
    re.DOTALL,
)


def _decode_pem_block(data: bytes) -> tuple[str, bytes] | None:
    m = _PEM_BLOCK_RE.search(data)
    if m is None:
        return None
    try:
        der = base64.b64decode(m.group(2))
    except binascii.Error:
        return None
    return m.group(1).decode("ascii"), der


def validate_tls(tls_cert: bytes, tls_private_key: bytes) -> None:
    """Check that a certificate and private key parse and belong together."""
    try:
        certs = x509.load_pem_x509_certificates(tls_cert)
    except ValueError as exc:
        raise ResolutionError(f"tls secret is invalid: failed to parse certificate: {exc}") from exc

    try:
        key = serialization.load_pem_private_key(tls_private_key, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ResolutionError(f"tls secret is invalid: failed to parse private key: {exc}") from exc

    cert_public = certs[0].public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    key_public = key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    if cert_public != key_public:
        raise ResolutionError("tls secret is invalid: private key does not match public key")


def validate_ca(ca_data: bytes) -> None:
    """Check a ``ca.crt`` entry, which may be PEM or base64-encoded PEM."""
    try:
        data = base64.b64decode(b"".join(ca_data.split()), validate=True)
    except (binascii.Error, ValueError):
        data = ca_data

    block = _decode_pem_block(data)
    if block is None:
        raise ResolutionError(f'the data field "{CA_KEY}" must hold a valid CERTIFICATE PEM block')

    block_type, der = block
    if block_type != "CERTIFICATE":
        raise ResolutionError(
            f'the data field "{CA_KEY}" must hold a valid CERTIFICATE PEM block, '
            f'but got "{block_type}"'
        )

    try:
        x509.load_der_x509_certificate(der)
    except ValueError as exc:
        raise ResolutionError(f"failed to validate certificate: {exc}") from exc


def _resolve_secret(secret: Secret) -> ResolvedEntry:
    bundle = None
    error: ResolutionError | None = None

    if secret.type == SECRET_TYPE_TLS:
        cert = Certificate(
            tls_cert=secret.data.get(TLS_CERT_KEY, b""),
            tls_private_key=secret.data.get(TLS_PRIVATE_KEY_KEY, b""),
            ca_cert=secret.data.get(CA_KEY, b""),
        )
        try:
            validate_tls(cert.tls_cert, cert.tls_private_key)
            # ca.crt is optional; cert-manager places the issuing CA there.
            if CA_KEY in secret.data:
                validate_ca(cert.ca_cert)
        except ResolutionError as exc:
            error = exc
        bundle = CertificateBundle(name=secret.metadata.nsname, kind=kinds.SECRET, cert=cert)
    elif secret.type == SECRET_TYPE_HTPASSWD:
        if not secret.data.get(AUTH_KEY):
            error = ResolutionError(
                f'missing required key "{AUTH_KEY}" in secret type "{secret.type}"'
            )
    else:
        error = ResolutionError(f'unsupported secret type "{secret.type}"')

    return ResolvedEntry(source=secret, cert_bundle=bundle, error=error)


def _resolve_config_map(cm: ConfigMap) -> ResolvedEntry:
    ca_cert = b""
    error: ResolutionError | None = None

    if CA_KEY in cm.data:
        ca_cert = cm.data[CA_KEY].encode("utf-8")
    if CA_KEY in cm.binary_data:
        ca_cert = cm.binary_data[CA_KEY]

    if not ca_cert:
        error = ResolutionError(f"ConfigMap does not have the data or binaryData field {CA_KEY}")
    else:
        try:
            validate_ca(ca_cert)
        except ResolutionError as exc:
            error = exc

    bundle = CertificateBundle(
        name=cm.metadata.nsname,
        kind=kinds.CONFIG_MAP,
        cert=Certificate(ca_cert=ca_cert),
    )
    return ResolvedEntry(source=cm, cert_bundle=bundle, error=error)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ResourceResolver:
    """Resolves referenced resources once per key, safely across threads.

    Validation of a key runs under that key's own lock, so distinct keys never
    wait on each other. A finished entry is published in one step; readers see
    either no entry or a complete one.
    """

    def __init__(self, resources: Mapping[ResourceKey, Secret | ConfigMap]) -> None:
        self._resources = resources
        self._resolved: dict[ResourceKey, ResolvedEntry] = {}
        self._key_locks: dict[ResourceKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def resolve(
        self, resource_type: ResourceType, nsname: NamespacedName
    ) -> ResolutionError | None:
        """Resolve a resource and return its validation error, if any."""
        key = ResourceKey(resource_type=resource_type, namespaced_name=nsname)

        entry = self._lookup(key)
        if entry is not None:
            return entry.error

        while True:
            lock = self._lock_for(key)
            with lock:
                with self._guard:
                    # invalidate() retired this lock while we waited on it
                    if self._key_locks.get(key) is not lock:
                        continue
                    entry = self._resolved.get(key)
                if entry is None:
                    entry = self._compute(key)
                    with self._guard:
                        self._resolved[key] = entry
                return entry.error

    def invalidate(self, key: ResourceKey) -> None:
        """Forget a key so the next resolve validates it again.

        Waits for an in-flight validation of the key to finish, so its result
        is dropped rather than published afterwards.
        """
        with self._lock_for(key):
            with self._guard:
                self._resolved.pop(key, None)
                self._key_locks.pop(key, None)

    def get_resolved(self) -> dict[ResourceKey, ResolvedEntry]:
        with self._guard:
            return dict(self._resolved)

    def get_secrets(self) -> dict[NamespacedName, ResolvedEntry]:
        return self._of_type(ResourceType.SECRET)

    def get_config_maps(self) -> dict[NamespacedName, ResolvedEntry]:
        return self._of_type(ResourceType.CONFIG_MAP)

    def _of_type(self, resource_type: ResourceType) -> dict[NamespacedName, ResolvedEntry]:
        return {
            key.namespaced_name: entry
            for key, entry in self.get_resolved().items()
            if key.resource_type is resource_type
        }

    def _lookup(self, key: ResourceKey) -> ResolvedEntry | None:
        with self._guard:
            return self._resolved.get(key)

    def _lock_for(self, key: ResourceKey) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _compute(self, key: ResourceKey) -> ResolvedEntry:
        obj = self._resources.get(key)
        if obj is None:
            logger.debug("%s %s does not exist", key.resource_type.value, key.namespaced_name)
            return ResolvedEntry(
                source=None,
                error=ResolutionError(
                    f"{key.resource_type.value} {key.namespaced_name} does not exist"
                ),
            )

        if key.resource_type is ResourceType.SECRET:
            if not isinstance(obj, Secret):
                raise TypeError(f"expected Secret object, got {type(obj).__name__}")
            entry = _resolve_secret(obj)
        else:
            if not isinstance(obj, ConfigMap):
                raise TypeError(f"expected ConfigMap object, got {type(obj).__name__}")
            entry = _resolve_config_map(obj)

        if entry.error is not None:
            logger.debug(
                "%s %s is invalid: %s", key.resource_type.value, key.namespaced_name, entry.error
            )
        else:
            logger.debug("Resolved %s %s", key.resource_type.value, key.namespaced_name)
        return entry
