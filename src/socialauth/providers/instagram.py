"""Instagram login.

Instagram's legacy API wraps every response in a ``data`` envelope and
expects the access token as a query parameter rather than a header.
"""

from __future__ import annotations

from typing import Any

from socialauth.core.config import InstagramSettings
from socialauth.errors import ProfileUnavailableError
from socialauth.providers.base import ProviderClient, RemoteProfile

INSTAGRAM_API = "https://api.instagram.com"


class InstagramClient(ProviderClient):
    name = "instagram"
    plugin_id = "social_auth_instagram"
    label = "Instagram"
    default_scopes = frozenset({"basic"})
    token_placement = "uri"

    authorize_url = f"{INSTAGRAM_API}/oauth/authorize"
    token_url = f"{INSTAGRAM_API}/oauth/access_token"
    resource_owner_url = f"{INSTAGRAM_API}/v1/users/self"

    def __init__(self, settings: InstagramSettings, redirect_uri: str, **kwargs: Any):
        super().__init__(settings, redirect_uri, **kwargs)
        self._api_calls = settings.get_api_calls()

    @property
    def extra_resources(self) -> list[str]:
        return list(self._api_calls)

    def parse_profile(self, data: Any) -> RemoteProfile:
        user = data.get("data") if isinstance(data, dict) else None
        if not isinstance(user, dict) or not user.get("id"):
            raise ProfileUnavailableError("Instagram profile has no user id", provider=self.name)

        return RemoteProfile(
            provider_user_id=str(user["id"]),
            display_name=user.get("full_name") or user.get("username") or "",
            avatar_url=user.get("profile_picture") or None,
            raw_data=data,
        )
