"""Resource kind and API group names."""

from __future__ import annotations

GATEWAY_API_GROUP = "gateway.networking.k8s.io"

GATEWAY = "Gateway"
HTTP_ROUTE = "HTTPRoute"
GRPC_ROUTE = "GRPCRoute"
SERVICE = "Service"

SECRET = "Secret"
CONFIG_MAP = "ConfigMap"

PROXY_SETTINGS_POLICY = "ProxySettingsPolicy"
RATE_LIMIT_POLICY = "RateLimitPolicy"
SNIPPETS_POLICY = "SnippetsPolicy"
AUTHENTICATION_FILTER = "AuthenticationFilter"

ROUTE_KINDS = frozenset({HTTP_ROUTE, GRPC_ROUTE})
