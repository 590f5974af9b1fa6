"""Tests for the login flow state machine."""

from __future__ import annotations

import json
from functools import partial

import pytest

from socialauth.core.config import DrupalSettings, SiteSettings, SocialAuthConfig
from socialauth.errors import (
    AccessDeniedError,
    ExchangeFailedError,
    InvalidGrantError,
    InvalidStateError,
    NotConfiguredError,
    ProfileUnavailableError,
    ProviderUnavailableError,
)
from socialauth.flow import AuthFlowManager, FlowState
from socialauth.providers import PROVIDERS, create_client
from socialauth.session import ACCESS_TOKEN_KEY, STATE_KEY, Session, SessionDataHandler


def make_flow(config, idp, session, provider="drupal"):
    definition = PROVIDERS[provider]
    factory = partial(create_client, provider, config, None, transport=idp.transport)
    store = SessionDataHandler(session, definition.plugin_id)
    return AuthFlowManager(provider, factory, store), store


class TestBeginLogin:
    """Tests for the redirect phase."""

    def test_begin_login_stores_state(self, config, drupal_idp):
        """Test the URL carries the client id and the state lands in the session."""
        session = Session(session_id="s")
        flow, store = make_flow(config, drupal_idp, session)

        target = flow.begin_login()

        assert "client_id=abc" in target.url
        stored = store.get(STATE_KEY)
        assert stored == target.state
        assert len(stored) >= 16
        assert session.data["social_auth_drupal_oauth2state"] == stored
        assert flow.state is FlowState.AWAITING_CALLBACK
        assert drupal_idp.calls == []

    def test_repeated_begin_login_overwrites_state(self, config, drupal_idp):
        """Test the latest redirect invalidates an earlier pending state."""
        flow, store = make_flow(config, drupal_idp, Session(session_id="s"))

        first = flow.begin_login()
        second = flow.begin_login()

        assert first.state != second.state
        assert store.get(STATE_KEY) == second.state

    @pytest.mark.parametrize("missing", ["client_id", "client_secret"])
    def test_not_configured_makes_no_network_call(self, drupal_idp, missing):
        """Test missing settings fail before any provider request."""
        credentials = {"client_id": "abc", "client_secret": "xyz", missing: ""}
        config = SocialAuthConfig(
            site=SiteSettings(base_url="https://site.example"),
            drupal=DrupalSettings(base_url="https://idp.example", **credentials),
        )
        session = Session(session_id="s")
        flow, _ = make_flow(config, drupal_idp, session)

        with pytest.raises(NotConfiguredError):
            flow.begin_login()

        assert drupal_idp.calls == []
        assert session.data == {}
        assert flow.state is FlowState.FAILED


class TestHandleCallback:
    """Tests for the callback phase."""

    @pytest.mark.asyncio
    async def test_successful_login(self, config, drupal_idp):
        """Test a matching state and good code yield a normalized identity."""
        session = Session(session_id="s")
        flow, store = make_flow(config, drupal_idp, session)
        state = flow.begin_login().state

        identity = await flow.handle_callback({"code": "GOOD", "state": state})

        assert identity.provider_user_id == "42"
        assert identity.name == "Jane"
        assert identity.email == "jane@x.com"
        assert identity.plugin_scoped_id == "social_auth_drupal:42"
        assert identity.access_token.access_token == "drupal-token-123"
        assert identity.extra_json == "{}"
        assert drupal_idp.paths == ["/oauth2/token", "/oauth2/UserInfo"]
        assert flow.state is FlowState.COMPLETED

        assert store.get(ACCESS_TOKEN_KEY)["access_token"] == "drupal-token-123"
        assert store.get(STATE_KEY) is None

    @pytest.mark.asyncio
    async def test_access_denied_leaves_session_untouched(self, config, drupal_idp):
        """Test access_denied fails without consuming the stored state."""
        session = Session(session_id="s")
        flow, _ = make_flow(config, drupal_idp, session)
        flow.begin_login()
        before = dict(session.data)

        with pytest.raises(AccessDeniedError):
            await flow.handle_callback({"error": "access_denied"})

        assert session.data == before
        assert drupal_idp.calls == []
        assert flow.state is FlowState.FAILED

    @pytest.mark.asyncio
    async def test_missing_state_is_rejected(self, config, drupal_idp):
        """Test a callback without a state is rejected."""
        session = Session(session_id="s")
        flow, store = make_flow(config, drupal_idp, session)
        flow.begin_login()

        with pytest.raises(InvalidStateError):
            await flow.handle_callback({"code": "GOOD"})

        assert drupal_idp.calls == []
        assert store.get(STATE_KEY) is None

    @pytest.mark.asyncio
    async def test_mismatched_state_short_circuits(self, config, drupal_idp):
        """Test a wrong state is rejected before any network call, even with a valid code."""
        session = Session(session_id="s")
        flow, store = make_flow(config, drupal_idp, session)
        flow.begin_login()
        store.set(ACCESS_TOKEN_KEY, {"access_token": "stale"})

        with pytest.raises(InvalidStateError):
            await flow.handle_callback({"code": "GOOD", "state": "forged"})

        assert drupal_idp.calls == []
        assert store.get(STATE_KEY) is None
        assert store.get(ACCESS_TOKEN_KEY) is None

    @pytest.mark.asyncio
    async def test_no_stored_state_is_rejected(self, config, drupal_idp):
        """Test a callback is rejected when no state was issued."""
        flow, _ = make_flow(config, drupal_idp, Session(session_id="s"))

        with pytest.raises(InvalidStateError):
            await flow.handle_callback({"code": "GOOD", "state": "anything"})

        assert drupal_idp.calls == []

    @pytest.mark.asyncio
    async def test_failure_is_repeatable(self, config, drupal_idp):
        """Test a replay after an InvalidState failure fails the same way."""
        session = Session(session_id="s")
        flow, _ = make_flow(config, drupal_idp, session)
        state = flow.begin_login().state

        with pytest.raises(InvalidStateError):
            await flow.handle_callback({"code": "GOOD", "state": "forged"})
        with pytest.raises(InvalidStateError):
            await flow.handle_callback({"code": "GOOD", "state": state})

        assert drupal_idp.calls == []

    @pytest.mark.asyncio
    async def test_state_is_single_use(self, config, drupal_idp):
        """Test one state can redeem only one code."""
        flow, _ = make_flow(config, drupal_idp, Session(session_id="s"))
        state = flow.begin_login().state

        await flow.handle_callback({"code": "GOOD", "state": state})
        with pytest.raises(InvalidStateError):
            await flow.handle_callback({"code": "GOOD", "state": state})

        assert drupal_idp.paths.count("/oauth2/token") == 1

    @pytest.mark.asyncio
    async def test_missing_code(self, config, drupal_idp):
        """Test a callback without a code fails before the exchange."""
        session = Session(session_id="s")
        flow, _ = make_flow(config, drupal_idp, session)
        state = flow.begin_login().state

        with pytest.raises(ExchangeFailedError):
            await flow.handle_callback({"state": state})

        assert drupal_idp.calls == []
        assert session.data == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("route", "error"),
        [
            ((503, "unavailable"), ProviderUnavailableError),
            ((400, {"error": "invalid_grant"}), InvalidGrantError),
            ((200, "not json"), InvalidGrantError),
            ((200, 123), InvalidGrantError),
            ((200, [1, 2]), InvalidGrantError),
        ],
    )
    async def test_exchange_failure_clears_session(self, config, make_idp, route, error):
        """Test a failed or unusable token response clears the session."""
        idp = make_idp({"/oauth2/token": route})
        session = Session(session_id="s")
        flow, _ = make_flow(config, idp, session)
        state = flow.begin_login().state

        with pytest.raises(error):
            await flow.handle_callback({"code": "BAD", "state": state})

        assert session.data == {}
        assert idp.paths == ["/oauth2/token"]
        assert isinstance(flow.failure, ExchangeFailedError)

    @pytest.mark.asyncio
    async def test_profile_failure_clears_session(self, config, make_idp):
        """Test a failed profile fetch clears the session."""
        idp = make_idp(
            {
                "/oauth2/token": (200, {"access_token": "t", "token_type": "Bearer"}),
                "/oauth2/UserInfo": (502, "bad gateway"),
            }
        )
        session = Session(session_id="s")
        flow, _ = make_flow(config, idp, session)
        state = flow.begin_login().state

        with pytest.raises(ProfileUnavailableError):
            await flow.handle_callback({"code": "GOOD", "state": state})

        assert session.data == {}
        assert flow.state is FlowState.FAILED

    @pytest.mark.asyncio
    async def test_not_configured_on_callback(self, drupal_idp):
        """Test a misconfigured provider fails before touching the session."""
        config = SocialAuthConfig(
            site=SiteSettings(base_url="https://site.example"),
            drupal=DrupalSettings(client_id="abc", client_secret="xyz"),
        )
        session = Session(session_id="s")
        session.data["social_auth_drupal_oauth2state"] = "pending"
        flow, _ = make_flow(config, drupal_idp, session)

        with pytest.raises(NotConfiguredError):
            await flow.handle_callback({"code": "GOOD", "state": "pending"})

        assert session.data == {"social_auth_drupal_oauth2state": "pending"}
        assert drupal_idp.calls == []


class TestInstagramExtraData:
    """Tests for extra data aggregation."""

    @pytest.mark.asyncio
    async def test_partial_extra_data(self, config, instagram_idp):
        """Test a failed extra fetch is omitted and login still completes."""
        flow, _ = make_flow(config, instagram_idp, Session(session_id="s"), "instagram")
        state = flow.begin_login().state

        identity = await flow.handle_callback({"code": "GOOD", "state": state})

        assert identity.extra == {"friends": {"count": 5}}
        assert json.loads(identity.extra_json) == {"friends": {"count": 5}}
        assert identity.provider_user_id == "1574083"
        assert identity.plugin_scoped_id == "social_auth_instagram:1574083"
        assert identity.email is None
        assert instagram_idp.paths == [
            "/oauth/access_token",
            "/v1/users/self",
            "/v1/users/self/media",
            "/v1/users/self/friends",
        ]

    @pytest.mark.asyncio
    async def test_malformed_extra_is_omitted(self, config, instagram_idp):
        """Test a non-JSON extra resource is left out."""
        instagram_idp.routes["/v1/users/self/media"] = (200, "<html>")
        flow, _ = make_flow(config, instagram_idp, Session(session_id="s"), "instagram")
        state = flow.begin_login().state

        identity = await flow.handle_callback({"code": "GOOD", "state": state})

        assert identity.extra == {"friends": {"count": 5}}

    @pytest.mark.asyncio
    async def test_no_api_calls(self, config, instagram_idp):
        """Test no extra requests are made when none are configured."""
        config.instagram.api_calls = ""
        flow, _ = make_flow(config, instagram_idp, Session(session_id="s"), "instagram")
        state = flow.begin_login().state

        identity = await flow.handle_callback({"code": "GOOD", "state": state})

        assert identity.extra == {}
        assert instagram_idp.paths == ["/oauth/access_token", "/v1/users/self"]
