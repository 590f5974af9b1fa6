"""Configuration types with environment variable support.

Site-wide settings use the SOCIALAUTH_ prefix; provider credentials use
SOCIALAUTH_DRUPAL_ and SOCIALAUTH_INSTAGRAM_.
Example: SOCIALAUTH_DRUPAL_CLIENT_ID=abc sets the Drupal client id.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CALLBACK_PATH_TEMPLATE = "/user/login/{provider}/callback"


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def split_csv(value: str) -> list[str]:
    """Split a comma-separated setting, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


class SiteSettings(BaseSettings):
    """Host site settings shared by every provider.

    The proxy mirrors the host's outbound HTTP client configuration: when
    set, every call to an identity provider goes through it.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOCIALAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str | None = Field(
        default=None,
        description="Absolute base URL of the site. Falls back to the request origin.",
    )
    http_proxy: str | None = Field(
        default=None,
        description="Outbound proxy URL for identity provider calls.",
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for identity provider calls (seconds).",
    )
    login_path: str = Field(
        default="/user/login",
        description="Local login page that failed logins are redirected to.",
    )
    session_cookie_name: str = Field(
        default="_socialauth_session",
        description="Name of the browser session cookie.",
    )
    session_cookie_secure: bool = Field(
        default=True,
        description="Only send the session cookie over HTTPS.",
    )
    session_duration: int = Field(
        default=86400,
        description="Browser session lifetime (seconds).",
    )

    @field_validator("session_duration")
    @classmethod
    def _check_session_duration(cls, value: int) -> int:
        if value < 60:
            raise ValueError("session_duration must be at least 60 seconds")
        return value

    def redirect_uri(self, provider: str, base_url: str | None = None) -> str:
        """Callback URL registered with the identity provider."""
        base = (base_url or self.base_url or "").rstrip("/")
        return f"{base}{CALLBACK_PATH_TEMPLATE.format(provider=provider)}"

    def javascript_origin(self, base_url: str | None = None) -> str:
        """Host the identity provider should accept as an origin."""
        return urlparse(base_url or self.base_url or "").netloc


class ProviderSettings(BaseSettings):
    """Credentials shared by every OAuth2 provider."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    client_id: str | None = None
    client_secret: str | None = Field(default=None, repr=False)
    scopes: str = ""

    def get_scopes(self) -> set[str]:
        """Parse the scopes string into a set."""
        return set(split_csv(self.scopes))


class DrupalSettings(ProviderSettings):
    """Settings for a remote Drupal site acting as identity provider."""

    model_config = SettingsConfigDict(
        env_prefix="SOCIALAUTH_DRUPAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str | None = Field(
        default=None,
        description="Base URL of the Drupal identity provider.",
    )


class InstagramSettings(ProviderSettings):
    """Settings for Instagram login."""

    model_config = SettingsConfigDict(
        env_prefix="SOCIALAUTH_INSTAGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    scopes: str = "basic"
    api_calls: str = Field(
        default="",
        description="Comma-separated extra API resources fetched after login.",
    )

    def get_api_calls(self) -> list[str]:
        """Parse api_calls into an ordered list of resource names."""
        return split_csv(self.api_calls)


class SocialAuthConfig(BaseModel):
    """Master configuration combining site and provider settings.

    Use get_config() to get a cached instance built from the environment,
    or from_file() to build one from a YAML/TOML file.

    Example:
        config = get_config()
        print(config.drupal.client_id)
        print(config.site.redirect_uri("drupal"))
    """

    site: SiteSettings = Field(default_factory=SiteSettings)
    drupal: DrupalSettings = Field(default_factory=DrupalSettings)
    instagram: InstagramSettings = Field(default_factory=InstagramSettings)

    @classmethod
    def from_file(cls, path: str | Path) -> SocialAuthConfig:
        """Build a configuration from the site/drupal/instagram sections of a file."""
        raw = load_config_from_file(path)
        return cls(
            site=SiteSettings(**(raw.get("site") or {})),
            drupal=DrupalSettings(**(raw.get("drupal") or {})),
            instagram=InstagramSettings(**(raw.get("instagram") or {})),
        )

    def provider_settings(self, provider: str) -> ProviderSettings:
        """Return the settings section for a provider id."""
        settings = getattr(self, provider, None)
        if not isinstance(settings, ProviderSettings):
            raise ValueError(f"No settings section for provider: {provider}")
        return settings

    def to_display_dict(self) -> dict[str, Any]:
        """Export configuration as a nested dictionary with secrets masked."""
        return {
            "site": self.site.model_dump(),
            "drupal": {
                **self.drupal.model_dump(exclude={"client_secret"}),
                "client_secret": "***" if self.drupal.client_secret else None,
            },
            "instagram": {
                **self.instagram.model_dump(exclude={"client_secret"}),
                "client_secret": "***" if self.instagram.client_secret else None,
            },
        }


_config: SocialAuthConfig | None = None


def get_config() -> SocialAuthConfig:
    """Get the global configuration instance.

    The instance is created once and cached for the lifetime of the process.
    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = SocialAuthConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
