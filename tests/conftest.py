"""Shared fixtures: settings and a fake identity provider."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from socialauth.core.config import (
    DrupalSettings,
    InstagramSettings,
    SiteSettings,
    SocialAuthConfig,
)

DRUPAL_TOKEN = {
    "access_token": "drupal-token-123",
    "token_type": "Bearer",
    "expires_in": 3600,
    "refresh_token": "drupal-refresh-456",
}

DRUPAL_PROFILE = {"id": "42", "name": "Jane", "email": "jane@x.com"}

INSTAGRAM_TOKEN = {
    "access_token": "ig-token-789",
    "user": {"id": "1574083", "username": "snoopdogg"},
}

INSTAGRAM_PROFILE = {
    "data": {
        "id": "1574083",
        "username": "snoopdogg",
        "full_name": "Snoop Dogg",
        "profile_picture": "https://cdn.example/snoop.jpg",
    }
}


def refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


class FakeIdP:
    """httpx handler standing in for an identity provider.

    Routes map a URL path to either (status, body) or a callable taking the
    request. Every request is recorded so tests can count network calls.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not_found"})
        if callable(route):
            return route(request)
        status, body = route
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def paths(self) -> list[str]:
        return [call.url.path for call in self.calls]


@pytest.fixture
def config() -> SocialAuthConfig:
    return SocialAuthConfig(
        site=SiteSettings(base_url="https://site.example", session_cookie_secure=False),
        drupal=DrupalSettings(
            client_id="abc",
            client_secret="xyz",
            base_url="https://idp.example",
        ),
        instagram=InstagramSettings(
            client_id="ig-client",
            client_secret="ig-secret",
            api_calls="media,friends",
        ),
    )


@pytest.fixture
def drupal_idp() -> FakeIdP:
    return FakeIdP(
        {
            "/oauth2/token": (200, DRUPAL_TOKEN),
            "/oauth2/UserInfo": (200, DRUPAL_PROFILE),
        }
    )


@pytest.fixture
def instagram_idp() -> FakeIdP:
    return FakeIdP(
        {
            "/oauth/access_token": (200, INSTAGRAM_TOKEN),
            "/v1/users/self": (200, INSTAGRAM_PROFILE),
            "/v1/users/self/media": refuse,
            "/v1/users/self/friends": (200, {"count": 5}),
        }
    )


@pytest.fixture
def make_idp() -> Callable[..., FakeIdP]:
    return FakeIdP
