"""Generator for ProxySettingsPolicy."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from nginxpolicy.policies.base import TEMPLATE_ENV, GeneratedFile, Generator, of_kind
from nginxpolicy.policy.models import Policy, ProxySettingsPolicy, ProxySettingsPolicySpec

_TEMPLATE = TEMPLATE_ENV.from_string(
    """
{% if s.proxy_buffering %}
proxy_buffering {{ s.proxy_buffering }};
{% endif %}
{% if s.proxy_buffer_size %}
proxy_buffer_size {{ s.proxy_buffer_size }};
{% endif %}
{% if s.proxy_buffers %}
proxy_buffers {{ s.proxy_buffers }};
{% endif %}
{% if s.proxy_busy_buffers_size %}
proxy_busy_buffers_size {{ s.proxy_busy_buffers_size }};
{% endif %}
"""
)


@dataclass(frozen=True)
class _ProxySettings:
    proxy_buffering: str = ""
    proxy_buffer_size: str = ""
    proxy_buffers: str = ""
    proxy_busy_buffers_size: str = ""


def _settings(spec: ProxySettingsPolicySpec) -> _ProxySettings:
    buffering = spec.buffering
    if buffering is None:
        return _ProxySettings()

    proxy_buffering = ""
    if buffering.disable is not None:
        proxy_buffering = "off" if buffering.disable else "on"

    proxy_buffers = ""
    if buffering.buffers is not None:
        proxy_buffers = f"{buffering.buffers.number} {buffering.buffers.size}"

    return _ProxySettings(
        proxy_buffering=proxy_buffering,
        proxy_buffer_size=buffering.buffer_size or "",
        proxy_buffers=proxy_buffers,
        proxy_busy_buffers_size=buffering.busy_buffers_size or "",
    )


class ProxySettingsGenerator(Generator):
    """Renders proxy buffering directives for http and location contexts."""

    def generate_for_http(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return _generate(policies)

    def generate_for_location(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return _generate(policies)

    def generate_for_internal_location(
        self, policies: Sequence[Policy]
    ) -> list[GeneratedFile]:
        return _generate(policies)


def _generate(policies: Sequence[Policy]) -> list[GeneratedFile]:
    files: list[GeneratedFile] = []
    for psp in of_kind(policies, ProxySettingsPolicy):
        files.append(
            GeneratedFile(
                name=f"ProxySettingsPolicy_{psp.namespace}_{psp.name}.conf",
                content=_TEMPLATE.render(s=_settings(psp.spec)),
            )
        )
    return files
