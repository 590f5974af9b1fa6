"""OAuth2 identity provider adapters.

Example usage:

    from socialauth.providers import create_client

    client = create_client("drupal", config, site_base_url="https://example.com")
    url, state = client.build_authorization_url()
"""

from socialauth.providers.base import (
    AccessToken,
    AuthorizationRequest,
    ProviderClient,
    RemoteProfile,
)
from socialauth.providers.drupal import DrupalClient
from socialauth.providers.instagram import InstagramClient
from socialauth.providers.registry import (
    PROVIDERS,
    ProviderDefinition,
    create_client,
    get_definition,
)

__all__ = [
    # Adapters
    "ProviderClient",
    "DrupalClient",
    "InstagramClient",
    # Data
    "AccessToken",
    "AuthorizationRequest",
    "RemoteProfile",
    # Registry
    "PROVIDERS",
    "ProviderDefinition",
    "create_client",
    "get_definition",
]
