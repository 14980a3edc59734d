"""nginxpolicy — attached-policy validation and NGINX directive generation."""

__version__ = "0.1.0"
