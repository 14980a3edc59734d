"""Tests for the memoizing Secret/ConfigMap resolver."""

from __future__ import annotations

import base64
import threading
from unittest.mock import patch

import pytest

from nginxpolicy.objects import (
    SECRET_TYPE_HTPASSWD,
    SECRET_TYPE_TLS,
    ConfigMap,
    NamespacedName,
    ObjectMeta,
    Secret,
)
from nginxpolicy.resolver import (
    ResolutionError,
    ResourceKey,
    ResourceResolver,
    ResourceType,
    _resolve_secret,
    validate_ca,
)

INVALID_PEM_CERT = b"-----BEGIN CERTIFICATE-----\n-----END CERTIFICATE-----\n"


def _secret(name: str, type_: str, **data: bytes) -> Secret:
    return Secret(metadata=ObjectMeta(name=name, namespace="test"), type=type_, data=dict(data))


def _config_map(name: str, data=None, binary_data=None) -> ConfigMap:
    return ConfigMap(
        metadata=ObjectMeta(name=name, namespace="test"),
        data=data or {},
        binary_data=binary_data or {},
    )


def _resolver(*objects) -> ResourceResolver:
    resources = {}
    for obj in objects:
        rtype = ResourceType.SECRET if isinstance(obj, Secret) else ResourceType.CONFIG_MAP
        resources[ResourceKey(rtype, obj.metadata.nsname)] = obj
    return ResourceResolver(resources)


def _tls_data(cert: bytes, key: bytes, ca: bytes | None = None) -> dict[str, bytes]:
    data = {"tls.crt": cert, "tls.key": key}
    if ca is not None:
        data["ca.crt"] = ca
    return data


class TestSecrets:
    def test_valid_tls(self, tls_cert_pem, tls_key_pem):
        secret = Secret(
            metadata=ObjectMeta(name="tls", namespace="test"),
            type=SECRET_TYPE_TLS,
            data=_tls_data(tls_cert_pem, tls_key_pem),
        )
        resolver = _resolver(secret)
        nsname = NamespacedName("test", "tls")

        assert resolver.resolve(ResourceType.SECRET, nsname) is None
        entry = resolver.get_secrets()[nsname]
        assert entry.source is secret
        assert entry.cert_bundle.name == nsname
        assert entry.cert_bundle.kind == "Secret"
        assert entry.cert_bundle.cert.tls_cert == tls_cert_pem
        assert entry.cert_bundle.cert.tls_private_key == tls_key_pem

    def test_valid_tls_with_ca(self, tls_cert_pem, tls_key_pem, ca_cert_pem):
        secret = Secret(
            metadata=ObjectMeta(name="tls", namespace="test"),
            type=SECRET_TYPE_TLS,
            data=_tls_data(tls_cert_pem, tls_key_pem, ca_cert_pem),
        )
        resolver = _resolver(secret)
        assert resolver.resolve(ResourceType.SECRET, NamespacedName("test", "tls")) is None

    def test_mismatched_key(self, tls_cert_pem, other_key_pem):
        secret = Secret(
            metadata=ObjectMeta(name="tls", namespace="test"),
            type=SECRET_TYPE_TLS,
            data=_tls_data(tls_cert_pem, other_key_pem),
        )
        err = _resolver(secret).resolve(ResourceType.SECRET, NamespacedName("test", "tls"))
        assert str(err) == "tls secret is invalid: private key does not match public key"

    @pytest.mark.parametrize("which", ["cert", "key"])
    def test_unparseable_pair(self, tls_cert_pem, tls_key_pem, which):
        cert = INVALID_PEM_CERT if which == "cert" else tls_cert_pem
        key = b"not a key" if which == "key" else tls_key_pem
        secret = Secret(
            metadata=ObjectMeta(name="tls", namespace="test"),
            type=SECRET_TYPE_TLS,
            data=_tls_data(cert, key),
        )
        err = _resolver(secret).resolve(ResourceType.SECRET, NamespacedName("test", "tls"))
        assert str(err).startswith("tls secret is invalid: ")

    def test_invalid_ca_keeps_source_and_bundle(self, tls_cert_pem, tls_key_pem):
        secret = Secret(
            metadata=ObjectMeta(name="tls", namespace="test"),
            type=SECRET_TYPE_TLS,
            data=_tls_data(tls_cert_pem, tls_key_pem, INVALID_PEM_CERT),
        )
        resolver = _resolver(secret)
        nsname = NamespacedName("test", "tls")

        err = resolver.resolve(ResourceType.SECRET, nsname)
        assert str(err).startswith("failed to validate certificate: ")

        entry = resolver.get_secrets()[nsname]
        assert entry.source is secret
        assert entry.cert_bundle is not None
        assert entry.error is err

    def test_htpasswd(self):
        secret = _secret("auth", SECRET_TYPE_HTPASSWD, auth=b"user:{PLAIN}pass")
        assert _resolver(secret).resolve(ResourceType.SECRET, NamespacedName("test", "auth")) is None

    @pytest.mark.parametrize("data", [{}, {"auth": b""}, {"other": b"user:pass"}])
    def test_htpasswd_requires_auth(self, data):
        secret = _secret("auth", SECRET_TYPE_HTPASSWD, **data)
        err = _resolver(secret).resolve(ResourceType.SECRET, NamespacedName("test", "auth"))
        assert str(err) == 'missing required key "auth" in secret type "nginx.org/htpasswd"'

    def test_unsupported_type(self):
        secret = _secret("opaque", "Opaque", foo=b"bar")
        err = _resolver(secret).resolve(ResourceType.SECRET, NamespacedName("test", "opaque"))
        assert str(err) == 'unsupported secret type "Opaque"'

    def test_missing(self):
        resolver = _resolver()
        nsname = NamespacedName("test", "not-exist")
        first = resolver.resolve(ResourceType.SECRET, nsname)
        second = resolver.resolve(ResourceType.SECRET, nsname)
        assert str(first) == "Secret test/not-exist does not exist"
        assert str(second) == str(first)
        assert resolver.get_secrets()[nsname].source is None

    def test_wrong_object_type_raises(self):
        cm = _config_map("cm")
        resolver = ResourceResolver({ResourceKey(ResourceType.SECRET, cm.metadata.nsname): cm})
        with pytest.raises(TypeError, match="expected Secret object"):
            resolver.resolve(ResourceType.SECRET, cm.metadata.nsname)


class TestConfigMaps:
    def test_ca_in_data(self, ca_cert_pem):
        cm = _config_map("ca", data={"ca.crt": ca_cert_pem.decode()})
        resolver = _resolver(cm)
        nsname = NamespacedName("test", "ca")
        assert resolver.resolve(ResourceType.CONFIG_MAP, nsname) is None
        entry = resolver.get_config_maps()[nsname]
        assert entry.cert_bundle.kind == "ConfigMap"
        assert entry.cert_bundle.cert.ca_cert == ca_cert_pem

    def test_ca_in_binary_data(self, ca_cert_pem):
        cm = _config_map("ca", binary_data={"ca.crt": ca_cert_pem})
        assert _resolver(cm).resolve(ResourceType.CONFIG_MAP, NamespacedName("test", "ca")) is None

    def test_base64_encoded_ca(self, ca_cert_pem):
        cm = _config_map("ca", data={"ca.crt": base64.b64encode(ca_cert_pem).decode()})
        assert _resolver(cm).resolve(ResourceType.CONFIG_MAP, NamespacedName("test", "ca")) is None

    def test_missing_ca(self):
        cm = _config_map("ca", data={"other": "x"})
        err = _resolver(cm).resolve(ResourceType.CONFIG_MAP, NamespacedName("test", "ca"))
        assert str(err) == "ConfigMap does not have the data or binaryData field ca.crt"

    def test_missing_config_map(self):
        err = _resolver().resolve(ResourceType.CONFIG_MAP, NamespacedName("test", "gone"))
        assert str(err) == "ConfigMap test/gone does not exist"


class TestValidateCA:
    def test_not_pem(self):
        with pytest.raises(ResolutionError) as exc_info:
            validate_ca(b"definitely not a certificate")
        assert str(exc_info.value) == (
            'the data field "ca.crt" must hold a valid CERTIFICATE PEM block'
        )

    def test_wrong_block_type(self, tls_key_pem):
        with pytest.raises(ResolutionError) as exc_info:
            validate_ca(tls_key_pem)
        assert str(exc_info.value) == (
            'the data field "ca.crt" must hold a valid CERTIFICATE PEM block, '
            'but got "PRIVATE KEY"'
        )

    def test_unparseable_certificate(self):
        with pytest.raises(ResolutionError, match="failed to validate certificate"):
            validate_ca(INVALID_PEM_CERT)


class TestMemoization:
    def test_invalid_key_resolved_once(self):
        secret = _secret("opaque", "Opaque")
        resolver = _resolver(secret)
        nsname = NamespacedName("test", "opaque")

        with patch("nginxpolicy.resolver._resolve_secret", wraps=_resolve_secret) as spy:
            first = resolver.resolve(ResourceType.SECRET, nsname)
            second = resolver.resolve(ResourceType.SECRET, nsname)

        assert spy.call_count == 1
        assert first is second
        assert str(first) == str(second)

    def test_invalidate_forces_revalidation(self):
        secret = _secret("auth", SECRET_TYPE_HTPASSWD, auth=b"u:p")
        resolver = _resolver(secret)
        nsname = NamespacedName("test", "auth")

        with patch("nginxpolicy.resolver._resolve_secret", wraps=_resolve_secret) as spy:
            resolver.resolve(ResourceType.SECRET, nsname)
            resolver.invalidate(ResourceKey(ResourceType.SECRET, nsname))
            assert nsname not in resolver.get_secrets()
            resolver.resolve(ResourceType.SECRET, nsname)

        assert spy.call_count == 2

    def test_get_resolved_is_a_snapshot(self):
        resolver = _resolver()
        snapshot = resolver.get_resolved()
        resolver.resolve(ResourceType.SECRET, NamespacedName("test", "x"))
        assert snapshot == {}
        assert len(resolver.get_resolved()) == 1

    def test_secrets_and_config_maps_separated(self):
        resolver = _resolver()
        resolver.resolve(ResourceType.SECRET, NamespacedName("test", "same"))
        resolver.resolve(ResourceType.CONFIG_MAP, NamespacedName("test", "same"))
        assert str(resolver.get_secrets()[NamespacedName("test", "same")].error).startswith("Secret")
        assert str(resolver.get_config_maps()[NamespacedName("test", "same")].error).startswith(
            "ConfigMap"
        )


class TestConcurrency:
    def test_concurrent_resolves_validate_once(self, tls_cert_pem, tls_key_pem):
        secret = Secret(
            metadata=ObjectMeta(name="tls", namespace="test"),
            type=SECRET_TYPE_TLS,
            data=_tls_data(tls_cert_pem, tls_key_pem),
        )
        resolver = _resolver(secret)
        nsname = NamespacedName("test", "tls")
        barrier = threading.Barrier(16)
        results = []
        results_lock = threading.Lock()

        def worker():
            barrier.wait()
            err = resolver.resolve(ResourceType.SECRET, nsname)
            with results_lock:
                results.append(err)

        with patch("nginxpolicy.resolver._resolve_secret", wraps=_resolve_secret) as spy:
            threads = [threading.Thread(target=worker) for _ in range(16)]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=10)

        assert spy.call_count == 1
        assert results == [None] * 16

    def test_distinct_keys_do_not_block_each_other(self):
        slow = _secret("slow", SECRET_TYPE_HTPASSWD, auth=b"u:p")
        fast = _secret("fast", SECRET_TYPE_HTPASSWD, auth=b"u:p")
        resolver = _resolver(slow, fast)
        slow_key = ResourceKey(ResourceType.SECRET, slow.metadata.nsname)

        started = threading.Event()
        release = threading.Event()
        waited = []

        def gated(secret):
            if secret.metadata.name == "slow":
                started.set()
                waited.append(release.wait(timeout=5))
            return _resolve_secret(secret)

        with patch("nginxpolicy.resolver._resolve_secret", side_effect=gated):
            t = threading.Thread(
                target=resolver.resolve, args=(ResourceType.SECRET, slow.metadata.nsname)
            )
            t.start()
            assert started.wait(timeout=5)

            assert resolver.resolve(ResourceType.SECRET, fast.metadata.nsname) is None
            # the in-flight key is not visible until fully computed
            assert slow_key not in resolver.get_resolved()

            release.set()
            t.join(timeout=5)

        assert waited == [True]
        assert resolver.get_resolved()[slow_key].error is None

    def test_invalidate_waits_for_in_flight_validation(self):
        secret = _secret("auth", SECRET_TYPE_HTPASSWD, auth=b"u:p")
        resolver = _resolver(secret)
        key = ResourceKey(ResourceType.SECRET, secret.metadata.nsname)

        started = threading.Event()
        release = threading.Event()
        invalidated = threading.Event()

        def gated(s):
            started.set()
            release.wait(timeout=5)
            return _resolve_secret(s)

        def invalidate():
            resolver.invalidate(key)
            invalidated.set()

        with patch("nginxpolicy.resolver._resolve_secret", side_effect=gated):
            resolving = threading.Thread(
                target=resolver.resolve, args=(ResourceType.SECRET, secret.metadata.nsname)
            )
            resolving.start()
            assert started.wait(timeout=5)

            invalidating = threading.Thread(target=invalidate)
            invalidating.start()
            assert not invalidated.wait(timeout=0.2)

            release.set()
            resolving.join(timeout=5)
            invalidating.join(timeout=5)

        assert invalidated.is_set()
        assert key not in resolver.get_resolved()

    def test_invalidate_releases_key_lock(self):
        resolver = _resolver()
        keys = [ResourceKey(ResourceType.SECRET, NamespacedName("test", f"s{i}")) for i in range(5)]
        for key in keys:
            resolver.resolve(key.resource_type, key.namespaced_name)
        for key in keys:
            resolver.invalidate(key)

        assert resolver._key_locks == {}
        assert resolver.get_resolved() == {}
        # a retired lock does not stop later resolves
        assert resolver.resolve(ResourceType.SECRET, NamespacedName("test", "s0")) is not None
