"""Core."""

from .config import (
    DrupalSettings,
    InstagramSettings,
    ProviderSettings,
    SiteSettings,
    SocialAuthConfig,
    clear_config,
    get_config,
    load_config_from_file,
)

__all__ = [
    "DrupalSettings",
    "InstagramSettings",
    "ProviderSettings",
    "SiteSettings",
    "SocialAuthConfig",
    "clear_config",
    "get_config",
    "load_config_from_file",
]
