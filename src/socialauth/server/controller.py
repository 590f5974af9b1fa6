"""Login routes.

Two routes per registered provider:

    GET /user/login/{provider}           -> redirect to the identity provider
    GET /user/login/{provider}/callback  -> finish login, hand off to provisioning

Every SocialAuthError ends here as a flash message plus a redirect to the
local login page. Nothing else about the failure reaches the browser.
"""

from __future__ import annotations

from functools import partial

import httpx
import structlog
from aiohttp import web

from socialauth.core.config import SocialAuthConfig
from socialauth.errors import SocialAuthError
from socialauth.flow import AuthFlowManager
from socialauth.observability.metrics import LOGIN_ATTEMPTS
from socialauth.providers.registry import PROVIDERS, ProviderDefinition, create_client
from socialauth.provisioning import UserProvisioningService, hand_off
from socialauth.server.middleware import ensure_session, get_session
from socialauth.session import SessionDataHandler, add_message, pop_messages

logger = structlog.get_logger()

FLASH_MESSAGES = {
    "not_configured": "Social Auth {label} not configured properly. Contact site administrator.",
    "access_denied": "You could not be authenticated.",
    "invalid_state": "{label} login failed. Invalid oAuth2 State.",
    "exchange_failed": (
        "{label} login failed, could not obtain an access token. Contact site administrator."
    ),
    "profile_unavailable": (
        "{label} login failed, could not load {label} profile. Contact site administrator."
    ),
}
DEFAULT_FLASH_MESSAGE = "You could not be authenticated."


def flash_message(error: SocialAuthError, label: str) -> str:
    """User-facing text for a login failure."""
    template = FLASH_MESSAGES.get(error.outcome, DEFAULT_FLASH_MESSAGE)
    return template.format(label=label)


class SocialAuthController:
    """HTTP entry points for every registered provider."""

    def __init__(
        self,
        config: SocialAuthConfig,
        provisioning: UserProvisioningService,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._provisioning = provisioning
        self._transport = transport

    def register_routes(self, app: web.Application) -> None:
        """Register login routes on an aiohttp application.

        Args:
            app: The aiohttp Application to add routes to.
        """
        app.router.add_get(self._config.site.login_path, self.login_page)
        app.router.add_get("/user/login/{provider}", self.redirect_to_provider)
        app.router.add_get("/user/login/{provider}/callback", self.callback)

    def _definition(self, request: web.Request) -> ProviderDefinition:
        definition = PROVIDERS.get(request.match_info["provider"])
        if definition is None:
            raise web.HTTPNotFound()
        return definition

    def _site_base_url(self, request: web.Request) -> str:
        return self._config.site.base_url or str(request.url.origin())

    async def _flow(self, request: web.Request, definition: ProviderDefinition) -> AuthFlowManager:
        factory = partial(
            create_client,
            definition.provider_id,
            self._config,
            self._site_base_url(request),
            transport=self._transport,
        )
        store = SessionDataHandler(await ensure_session(request), definition.plugin_id)
        return AuthFlowManager(definition.provider_id, factory, store)

    async def _failure_redirect(
        self,
        request: web.Request,
        definition: ProviderDefinition,
        error: SocialAuthError,
    ) -> web.HTTPFound:
        LOGIN_ATTEMPTS.labels(definition.provider_id, error.outcome).inc()
        add_message(await ensure_session(request), flash_message(error, definition.label))
        return web.HTTPFound(self._config.site.login_path)

    async def redirect_to_provider(self, request: web.Request) -> web.StreamResponse:
        """Begin login: store a fresh state and redirect to the provider."""
        definition = self._definition(request)
        flow = await self._flow(request, definition)
        try:
            target = flow.begin_login()
        except SocialAuthError as e:
            raise await self._failure_redirect(request, definition, e) from e

        LOGIN_ATTEMPTS.labels(definition.provider_id, "redirected").inc()
        raise web.HTTPFound(target.url)

    async def callback(self, request: web.Request) -> web.StreamResponse:
        """Finish login and return the provisioning service's response."""
        definition = self._definition(request)
        flow = await self._flow(request, definition)
        try:
            identity = await flow.handle_callback(request.query)
        except SocialAuthError as e:
            raise await self._failure_redirect(request, definition, e) from e

        LOGIN_ATTEMPTS.labels(definition.provider_id, "completed").inc()
        logger.info(
            "Login completed, handing off to provisioning",
            provider=definition.provider_id,
            user_id=identity.plugin_scoped_id,
            extra_resources=sorted(identity.extra),
        )
        return await hand_off(self._provisioning, identity)

    async def login_page(self, request: web.Request) -> web.Response:
        """Local login page: shows pending flash messages."""
        session = get_session(request)
        return web.json_response({"messages": pop_messages(session) if session is not None else []})
