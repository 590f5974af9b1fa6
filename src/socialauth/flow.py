"""Authorization-code login flow.

One AuthFlowManager drives one provider's login for one browser session:

    begin_login()      -> state written to the session, redirect URL returned
    handle_callback()  -> state validated, code exchanged, profile fetched

The two phases share nothing but the injected SessionDataStore. Every
failure is raised as a SocialAuthError subclass for the HTTP entry point
to turn into a flash message.
"""

from __future__ import annotations

import json
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from socialauth.errors import (
    AccessDeniedError,
    ExchangeFailedError,
    InvalidStateError,
    ProfileUnavailableError,
    SocialAuthError,
)
from socialauth.providers.base import AccessToken, ProviderClient
from socialauth.session import (
    ACCESS_TOKEN_KEY,
    LOGIN_ATTEMPT_KEYS,
    STATE_KEY,
    SessionDataStore,
)

logger = structlog.get_logger()


class FlowState(Enum):
    IDLE = "idle"
    REDIRECTING = "redirecting"
    AWAITING_CALLBACK = "awaiting_callback"
    VALIDATING = "validating"
    EXCHANGING = "exchanging"
    FETCHING_PROFILE = "fetching_profile"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RedirectTarget:
    """Where to send the browser to start the login."""

    url: str
    state: str = field(repr=False)


@dataclass
class NormalizedIdentity:
    """Provider-agnostic identity handed to user provisioning."""

    plugin_id: str
    provider_user_id: str
    name: str
    email: str | None
    access_token: AccessToken
    avatar_url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def plugin_scoped_id(self) -> str:
        return f"{self.plugin_id}:{self.provider_user_id}"

    @property
    def extra_json(self) -> str:
        return json.dumps(self.extra)


class AuthFlowManager:
    """Orchestrates the redirect and callback phases for one provider.

    Args:
        provider_id: Provider id, used in logs
        client_factory: Builds the provider adapter; raises NotConfiguredError
            when the credentials are incomplete
        store: Session storage for this browser session and provider
    """

    def __init__(
        self,
        provider_id: str,
        client_factory: Callable[[], ProviderClient],
        store: SessionDataStore,
    ):
        self.provider_id = provider_id
        self._client_factory = client_factory
        self._store = store
        self.state = FlowState.IDLE
        self.failure: SocialAuthError | None = None

    def begin_login(self) -> RedirectTarget:
        """Start a login attempt.

        Writes a fresh CSRF state into the session, replacing any state from
        an earlier attempt that is still in flight.

        Raises:
            NotConfiguredError: Before any state is written
        """
        self.state = FlowState.REDIRECTING
        try:
            client = self._client_factory()
        except SocialAuthError as e:
            self._fail(e)
            raise

        url, state = client.build_authorization_url()
        self._store.set(STATE_KEY, state)
        self.state = FlowState.AWAITING_CALLBACK
        logger.debug("Redirecting to identity provider", provider=self.provider_id)
        return RedirectTarget(url=url, state=state)

    async def handle_callback(self, query: Mapping[str, str]) -> NormalizedIdentity:
        """Complete a login attempt from the provider's callback parameters.

        Args:
            query: Callback query parameters (code, state, error)

        Returns:
            NormalizedIdentity for provisioning

        Raises:
            AccessDeniedError: The user declined consent; session untouched
            NotConfiguredError: Credentials missing; session untouched
            InvalidStateError: State missing or mismatched; session cleared
            ExchangeFailedError: Code could not be redeemed; session cleared
            ProfileUnavailableError: Profile not loaded; session cleared
        """
        if query.get("error") == "access_denied":
            logger.info("User declined consent", provider=self.provider_id)
            raise self._fail(AccessDeniedError("Access denied", provider=self.provider_id))

        try:
            client = self._client_factory()
        except SocialAuthError as e:
            self._fail(e)
            raise

        self.state = FlowState.VALIDATING
        self._validate_state(query.get("state") or "")

        self.state = FlowState.EXCHANGING
        code = query.get("code")
        if not code:
            logger.warning("Callback has no authorization code", provider=self.provider_id)
            raise self._abort(
                ExchangeFailedError("Missing authorization code", provider=self.provider_id)
            )
        try:
            token = await client.exchange_code(code)
        except ExchangeFailedError as e:
            self._abort(e)
            raise

        self._store.set(ACCESS_TOKEN_KEY, token.to_dict())

        self.state = FlowState.FETCHING_PROFILE
        try:
            profile = await client.fetch_profile(token)
        except ProfileUnavailableError as e:
            self._abort(e)
            raise

        for resource in client.extra_resources:
            try:
                profile.extra[resource] = await client.fetch_extra(token, resource)
            except ProfileUnavailableError:
                logger.warning(
                    "Extra resource unavailable, continuing without it",
                    provider=self.provider_id,
                    resource=resource,
                )

        self.state = FlowState.COMPLETED
        return NormalizedIdentity(
            plugin_id=client.plugin_id,
            provider_user_id=profile.provider_user_id,
            name=profile.display_name,
            email=profile.email,
            access_token=token,
            avatar_url=profile.avatar_url,
            extra=profile.extra,
        )

    def _validate_state(self, received: str) -> None:
        expected = self._store.get(STATE_KEY)
        if not expected or not received or not secrets.compare_digest(
            str(expected).encode(), received.encode()
        ):
            logger.error(
                "OAuth2 state missing or mismatched",
                provider=self.provider_id,
                has_stored_state=bool(expected),
                has_received_state=bool(received),
            )
            raise self._abort(InvalidStateError("Invalid OAuth2 state", provider=self.provider_id))

        # Single use: a validated state can never back a second code exchange.
        self._store.clear({STATE_KEY})

    def _fail(self, error: SocialAuthError) -> SocialAuthError:
        self.state = FlowState.FAILED
        self.failure = error
        return error

    def _abort(self, error: SocialAuthError) -> SocialAuthError:
        self._store.clear(LOGIN_ATTEMPT_KEYS)
        return self._fail(error)
