"""SnippetsPolicy: raw NGINX configuration injected per context."""

from nginxpolicy.policies.snippets.generator import SnippetsGenerator
from nginxpolicy.policies.snippets.validator import SnippetsValidator

__all__ = ["SnippetsGenerator", "SnippetsValidator"]
