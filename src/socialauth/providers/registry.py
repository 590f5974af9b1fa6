"""Static provider registry.

Maps a provider id (the path segment in /user/login/{provider}) to its
adapter class and settings section. Resolved at startup; there is no
runtime discovery.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from socialauth.core.config import (
    DrupalSettings,
    InstagramSettings,
    ProviderSettings,
    SocialAuthConfig,
)
from socialauth.providers.base import ProviderClient
from socialauth.providers.drupal import DrupalClient
from socialauth.providers.instagram import InstagramClient


@dataclass(frozen=True)
class ProviderDefinition:
    """Registry entry for one provider."""

    provider_id: str
    plugin_id: str
    label: str
    settings_class: type[ProviderSettings]
    client_class: type[ProviderClient]


PROVIDERS: dict[str, ProviderDefinition] = {
    "drupal": ProviderDefinition(
        provider_id="drupal",
        plugin_id=DrupalClient.plugin_id,
        label=DrupalClient.label,
        settings_class=DrupalSettings,
        client_class=DrupalClient,
    ),
    "instagram": ProviderDefinition(
        provider_id="instagram",
        plugin_id=InstagramClient.plugin_id,
        label=InstagramClient.label,
        settings_class=InstagramSettings,
        client_class=InstagramClient,
    ),
}


def get_definition(provider_id: str) -> ProviderDefinition:
    """Look up a provider by id.

    Raises:
        ValueError: If the provider is not registered
    """
    definition = PROVIDERS.get(provider_id.lower())
    if definition is None:
        available = ", ".join(sorted(PROVIDERS))
        raise ValueError(f"Unknown provider: {provider_id}. Available: {available}")
    return definition


def create_client(
    provider_id: str,
    config: SocialAuthConfig,
    site_base_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderClient:
    """Create a configured adapter for a provider.

    Args:
        provider_id: Registered provider id
        config: Site and provider settings
        site_base_url: Site base URL used for the redirect URI when the
            site settings do not set one
        transport: Custom httpx transport (tests)

    Returns:
        Configured ProviderClient

    Raises:
        ValueError: If the provider is not registered
        NotConfiguredError: If the provider's credentials are incomplete
    """
    definition = get_definition(provider_id)
    site = config.site
    return definition.client_class(
        config.provider_settings(definition.provider_id),
        redirect_uri=site.redirect_uri(definition.provider_id, site.base_url or site_base_url),
        proxy=site.http_proxy,
        timeout=site.http_timeout,
        transport=transport,
    )
