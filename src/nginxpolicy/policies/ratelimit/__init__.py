"""RateLimitPolicy: limit_req_zone and limit_req directives."""

from nginxpolicy.policies.ratelimit.generator import (
    DEFAULT_KEY,
    DEFAULT_RATE,
    DEFAULT_ZONE_SIZE,
    RateLimitGenerator,
)
from nginxpolicy.policies.ratelimit.validator import RateLimitValidator

__all__ = [
    "DEFAULT_KEY",
    "DEFAULT_RATE",
    "DEFAULT_ZONE_SIZE",
    "RateLimitGenerator",
    "RateLimitValidator",
]
