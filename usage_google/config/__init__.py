"""Configuration module for usage-google."""

from usage_google.config.loader import get_config_dir, load_oauth_clients

__all__ = ["get_config_dir", "load_oauth_clients"]
