"""Provider client adapter base.

A ProviderClient is a thin typed wrapper around authlib's
AsyncOAuth2Client for a single identity provider. It:
- Builds authorization URLs with a fresh CSRF state
- Exchanges authorization codes for access tokens
- Fetches the resource owner profile
- Fetches optional extra API resources with the same token

Every failure leaves the adapter as a typed SocialAuthError; authlib and
httpx exceptions never reach the caller.
"""

from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar
from urllib.parse import urljoin

import httpx
import structlog
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri

from socialauth.core.config import ProviderSettings
from socialauth.errors import (
    InvalidGrantError,
    NotConfiguredError,
    ProfileUnavailableError,
    ProviderUnavailableError,
)
from socialauth.observability.metrics import PROVIDER_REQUEST_DURATION

logger = structlog.get_logger()

STATE_BYTES = 32


def _check_token_response(response: httpx.Response) -> httpx.Response:
    if response.status_code >= 500:
        response.raise_for_status()
    if not isinstance(response.json(), dict):
        raise ValueError("Token response is not a JSON object")
    return response


@dataclass(frozen=True)
class AuthorizationRequest:
    """Immutable client settings for one redirect, built from configuration."""

    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    scopes: frozenset[str] = frozenset()
    base_url: str | None = None
    proxy: str | None = None
    timeout: float = 30.0


@dataclass
class AccessToken:
    """Access token returned by the token endpoint.

    ``raw`` keeps the provider's full token response; it is the serialized
    form stored in the session and handed back to authlib for API calls.
    """

    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    expires_at: int | None = None
    refresh_token: str | None = field(default=None, repr=False)
    scope: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> AccessToken:
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in"):
            expires_at = int(time.time()) + int(data["expires_in"])
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            expires_at=int(expires_at) if expires_at is not None else None,
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        token = dict(self.raw)
        token.setdefault("access_token", self.access_token)
        token.setdefault("token_type", self.token_type)
        if self.expires_at is not None:
            token["expires_at"] = self.expires_at
        return token


@dataclass
class RemoteProfile:
    """Resource owner profile mapped from a provider response."""

    provider_user_id: str
    display_name: str
    email: str | None = None
    avatar_url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    raw_data: dict[str, Any] = field(default_factory=dict, repr=False)


class ProviderClient(ABC):
    """Base class for OAuth2 provider adapters.

    Construction validates the provider settings and fails fast with
    NotConfiguredError, so a misconfigured provider never reaches the
    network.
    """

    name: ClassVar[str]
    plugin_id: ClassVar[str]
    label: ClassVar[str]
    default_scopes: ClassVar[frozenset[str]] = frozenset()
    token_placement: ClassVar[str] = "header"

    def __init__(
        self,
        settings: ProviderSettings,
        redirect_uri: str,
        proxy: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the adapter.

        Args:
            settings: Provider credentials section
            redirect_uri: Absolute callback URL registered at the provider
            proxy: Outbound proxy URL (None for a direct connection)
            timeout: Timeout for provider calls in seconds
            transport: Custom httpx transport (overrides the proxy)

        Raises:
            NotConfiguredError: If a required setting is empty
        """
        missing = [key for key, value in self._required_settings(settings).items() if not value]
        if missing:
            logger.error(
                "Provider credentials missing from settings",
                provider=self.name,
                missing=missing,
            )
            raise NotConfiguredError(
                f"{self.label} login is not configured: missing {', '.join(missing)}",
                provider=self.name,
            )

        self.request = AuthorizationRequest(
            client_id=settings.client_id or "",
            client_secret=settings.client_secret or "",
            redirect_uri=redirect_uri,
            scopes=frozenset(settings.get_scopes() or self.default_scopes),
            base_url=getattr(settings, "base_url", None),
            proxy=proxy or None,
            timeout=timeout,
        )
        self._transport = transport

    def _required_settings(self, settings: ProviderSettings) -> dict[str, str | None]:
        return {
            "client_id": settings.client_id,
            "client_secret": settings.client_secret,
        }

    @property
    @abstractmethod
    def authorize_url(self) -> str:
        """Authorization endpoint."""
        ...

    @property
    @abstractmethod
    def token_url(self) -> str:
        """Token endpoint."""
        ...

    @property
    @abstractmethod
    def resource_owner_url(self) -> str:
        """Endpoint returning the authenticated user's profile."""
        ...

    @property
    def api_base_url(self) -> str:
        """Base that relative extra resource names resolve against."""
        return self.resource_owner_url

    @property
    def extra_resources(self) -> list[str]:
        """Extra API resources fetched after the profile, in order."""
        return []

    @abstractmethod
    def parse_profile(self, data: Any) -> RemoteProfile:
        """Map a resource owner response to a RemoteProfile.

        Raises:
            ProfileUnavailableError: If the response has no usable user id
        """
        ...

    def build_transport(self) -> httpx.AsyncBaseTransport | None:
        """Resolve the transport: explicit transport, else proxy, else direct."""
        if self._transport is not None:
            return self._transport
        if self.request.proxy:
            return httpx.AsyncHTTPTransport(proxy=self.request.proxy)
        return None

    def _client(self, token: AccessToken | None = None) -> AsyncOAuth2Client:
        kwargs: dict[str, Any] = {
            "client_id": self.request.client_id,
            "client_secret": self.request.client_secret,
            "redirect_uri": self.request.redirect_uri,
            "token_endpoint_auth_method": "client_secret_post",
            "token_placement": self.token_placement,
            "timeout": self.request.timeout,
        }
        if token is not None:
            kwargs["token"] = token.to_dict()
        transport = self.build_transport()
        if transport is not None:
            kwargs["transport"] = transport
        return AsyncOAuth2Client(**kwargs)

    def build_authorization_url(self, scopes: Iterable[str] | None = None) -> tuple[str, str]:
        """Build the authorization URL and a fresh CSRF state.

        Pure construction: no network call, nothing persisted. The caller
        stores the returned state.

        Args:
            scopes: Scopes to request (defaults to the configured scopes)

        Returns:
            (url, state)
        """
        state = secrets.token_urlsafe(STATE_BYTES)
        requested = self.request.scopes if scopes is None else scopes
        url = prepare_grant_uri(
            self.authorize_url,
            client_id=self.request.client_id,
            response_type="code",
            redirect_uri=self.request.redirect_uri,
            scope=" ".join(sorted(requested)),
            state=state,
        )
        return url, state

    async def exchange_code(self, code: str) -> AccessToken:
        """Redeem an authorization code at the token endpoint.

        Raises:
            ProviderUnavailableError: Network failure or 5xx response
            InvalidGrantError: Provider error response or malformed token body
        """
        try:
            with PROVIDER_REQUEST_DURATION.labels(self.name, "exchange").time():
                async with self._client() as client:
                    client.register_compliance_hook(
                        "access_token_response", _check_token_response
                    )
                    token = await client.fetch_token(
                        self.token_url,
                        code=code,
                        grant_type="authorization_code",
                    )
        except httpx.HTTPError as e:
            logger.warning(
                "Token endpoint unavailable",
                provider=self.name,
                error_type=type(e).__name__,
            )
            raise ProviderUnavailableError(
                "Token endpoint unavailable", provider=self.name
            ) from e
        except OAuthError as e:
            logger.warning("Token endpoint rejected grant", provider=self.name, error=e.error)
            raise InvalidGrantError("Authorization code rejected", provider=self.name) from e
        except ValueError as e:
            logger.warning("Malformed token response", provider=self.name)
            raise InvalidGrantError("Malformed token response", provider=self.name) from e

        if not token or not token.get("access_token"):
            logger.warning("Token response has no access_token", provider=self.name)
            raise InvalidGrantError("Token response has no access_token", provider=self.name)

        return AccessToken.from_response(token)

    async def fetch_profile(self, token: AccessToken) -> RemoteProfile:
        """Fetch and map the resource owner profile.

        Raises:
            ProfileUnavailableError: If the call fails or returns unusable data
        """
        data = await self._get_json(token, self.resource_owner_url, "profile")
        return self.parse_profile(data)

    async def fetch_extra(self, token: AccessToken, resource: str) -> Any:
        """Fetch one extra API resource with the user's token.

        Args:
            token: Access token from exchange_code
            resource: Absolute URL or path relative to api_base_url

        Raises:
            ProfileUnavailableError: If the call fails or the body is not JSON
        """
        return await self._get_json(token, self.resolve_resource_url(resource), "extra")

    def resolve_resource_url(self, resource: str) -> str:
        resource = resource.strip()
        if resource.startswith(("https://", "http://")):
            return resource
        return urljoin(self.api_base_url.rstrip("/") + "/", resource.lstrip("/"))

    async def _get_json(self, token: AccessToken, url: str, operation: str) -> Any:
        try:
            with PROVIDER_REQUEST_DURATION.labels(self.name, operation).time():
                async with self._client(token) as client:
                    response = await client.get(url)
                    response.raise_for_status()
                    return response.json()
        except (httpx.HTTPError, OAuthError, ValueError) as e:
            # The URL may carry the token as a query parameter; keep it out of logs.
            logger.warning(
                "Provider API request failed",
                provider=self.name,
                operation=operation,
                error_type=type(e).__name__,
            )
            raise ProfileUnavailableError(
                f"{self.label} {operation} request failed", provider=self.name
            ) from e
