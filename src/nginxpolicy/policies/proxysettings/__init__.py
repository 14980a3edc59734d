"""ProxySettingsPolicy: proxy buffering directives."""

from nginxpolicy.policies.proxysettings.generator import ProxySettingsGenerator
from nginxpolicy.policies.proxysettings.validator import ProxySettingsValidator

__all__ = ["ProxySettingsGenerator", "ProxySettingsValidator"]
