"""Minimal Kubernetes object models shared by policies and the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field

from nginxpolicy import kinds

SECRET_TYPE_TLS = "kubernetes.io/tls"
SECRET_TYPE_HTPASSWD = "nginx.org/htpasswd"

TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY_KEY = "tls.key"
CA_KEY = "ca.crt"
AUTH_KEY = "auth"


@dataclass(frozen=True, order=True)
class NamespacedName:
    """Namespace/name pair identifying a namespaced object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ObjectMeta:
    """The subset of Kubernetes object metadata this engine reads."""

    name: str
    namespace: str = "default"
    creation_timestamp: float = 0.0
    generation: int = 1

    @property
    def nsname(self) -> NamespacedName:
        return NamespacedName(namespace=self.namespace, name=self.name)


@dataclass(frozen=True)
class Secret:
    """A core/v1 Secret. ``data`` holds decoded bytes."""

    kind = kinds.SECRET

    metadata: ObjectMeta
    type: str = "Opaque"
    data: dict[str, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfigMap:
    """A core/v1 ConfigMap."""

    kind = kinds.CONFIG_MAP

    metadata: ObjectMeta
    data: dict[str, str] = field(default_factory=dict)
    binary_data: dict[str, bytes] = field(default_factory=dict)
