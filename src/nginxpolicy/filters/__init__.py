"""Route filters that extend Gateway API matching with NGINX features."""
