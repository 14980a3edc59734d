"""Shared test fixtures."""

from __future__ import annotations

import datetime
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from nginxpolicy.objects import ObjectMeta
from nginxpolicy.policy.models import (
    LocalRateLimit,
    ProxyBuffering,
    ProxySettingsPolicy,
    ProxySettingsPolicySpec,
    RateLimit,
    RateLimitPolicy,
    RateLimitPolicySpec,
    RateLimitRule,
    TargetRef,
)


def _self_signed(key: ec.EllipticCurvePrivateKey, cn: str, ca: bool) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )


def _key_pem(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def tls_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def tls_key_pem(tls_key) -> bytes:
    return _key_pem(tls_key)


@pytest.fixture(scope="session")
def tls_cert_pem(tls_key) -> bytes:
    cert = _self_signed(tls_key, "cafe.example.com", ca=False)
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def other_key_pem() -> bytes:
    return _key_pem(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture(scope="session")
def ca_cert_pem() -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    return _self_signed(key, "test-ca", ca=True).public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def manifests_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "manifests.yaml"


@pytest.fixture
def gateway_ref() -> TargetRef:
    return TargetRef(name="gateway")


@pytest.fixture
def make_proxy_settings_policy(gateway_ref):
    def _make(name="psp", namespace="default", created=0.0, **buffering) -> ProxySettingsPolicy:
        return ProxySettingsPolicy(
            metadata=ObjectMeta(name=name, namespace=namespace, creation_timestamp=created),
            spec=ProxySettingsPolicySpec(
                target_refs=(gateway_ref,),
                buffering=ProxyBuffering(**buffering),
            ),
        )

    return _make


@pytest.fixture
def make_rate_limit_policy(gateway_ref):
    def _make(
        name="test-policy",
        namespace="default",
        created=0.0,
        rules=(RateLimitRule(),),
        target_refs=None,
        **rate_limit,
    ) -> RateLimitPolicy:
        return RateLimitPolicy(
            metadata=ObjectMeta(name=name, namespace=namespace, creation_timestamp=created),
            spec=RateLimitPolicySpec(
                target_refs=target_refs if target_refs is not None else (gateway_ref,),
                rate_limit=RateLimit(local=LocalRateLimit(rules=tuple(rules)), **rate_limit),
            ),
        )

    return _make
