"""Drupal site acting as an OAuth2 identity provider (simple_oauth)."""

from __future__ import annotations

from typing import Any

from socialauth.core.config import DrupalSettings
from socialauth.errors import ProfileUnavailableError
from socialauth.providers.base import ProviderClient, RemoteProfile


class DrupalClient(ProviderClient):
    """Adapter for a remote Drupal site.

    All endpoints hang off the configured base URL, so the base URL is a
    required setting alongside the client credentials.
    """

    name = "drupal"
    plugin_id = "social_auth_drupal"
    label = "Drupal"

    def _required_settings(self, settings: DrupalSettings) -> dict[str, str | None]:
        required = super()._required_settings(settings)
        required["base_url"] = settings.base_url
        return required

    @property
    def _base(self) -> str:
        return (self.request.base_url or "").rstrip("/")

    @property
    def authorize_url(self) -> str:
        return f"{self._base}/oauth2/authorize"

    @property
    def token_url(self) -> str:
        return f"{self._base}/oauth2/token"

    @property
    def resource_owner_url(self) -> str:
        return f"{self._base}/oauth2/UserInfo"

    @property
    def api_base_url(self) -> str:
        return self._base

    def parse_profile(self, data: Any) -> RemoteProfile:
        if not isinstance(data, dict):
            raise ProfileUnavailableError("Drupal profile is not an object", provider=self.name)

        user_id = data.get("sub") or data.get("id")
        if user_id in (None, ""):
            raise ProfileUnavailableError("Drupal profile has no user id", provider=self.name)

        return RemoteProfile(
            provider_user_id=str(user_id),
            display_name=data.get("name") or data.get("preferred_username") or "",
            email=data.get("email") or None,
            avatar_url=data.get("picture") or None,
            raw_data=data,
        )
