"""Error taxonomy for the social login flow.

Adapters and the flow manager raise these; only the HTTP entry points
catch them, turning each into a flash message and a redirect to the
local login page.
"""

from __future__ import annotations


class SocialAuthError(Exception):
    """Base class for login flow failures."""

    outcome = "failed"

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class NotConfiguredError(SocialAuthError):
    """Client credentials or provider base URL are missing."""

    outcome = "not_configured"


class AccessDeniedError(SocialAuthError):
    """The user declined consent at the identity provider."""

    outcome = "access_denied"


class InvalidStateError(SocialAuthError):
    """The callback state is missing or does not match the session."""

    outcome = "invalid_state"


class ExchangeFailedError(SocialAuthError):
    """The authorization code could not be exchanged for a token."""

    outcome = "exchange_failed"


class ProviderUnavailableError(ExchangeFailedError):
    """Network failure or non-2xx response from the token endpoint."""


class InvalidGrantError(ExchangeFailedError):
    """The provider rejected the grant or returned an unusable token body."""


class ProfileUnavailableError(SocialAuthError):
    """The resource owner profile or an extra resource could not be loaded."""

    outcome = "profile_unavailable"
