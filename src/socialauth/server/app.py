"""aiohttp application factory."""

from __future__ import annotations

import httpx
import structlog
from aiohttp import web

from socialauth.core.config import SocialAuthConfig
from socialauth.observability.metrics import generate_metrics, get_content_type
from socialauth.provisioning import UserProvisioningService
from socialauth.server.controller import SocialAuthController
from socialauth.server.middleware import SESSION_MANAGER_KEY, session_middleware
from socialauth.session import SessionManager

logger = structlog.get_logger()


async def _handle_health_check(request: web.Request) -> web.Response:
    return web.json_response({"status": "healthy"})


async def _handle_metrics(request: web.Request) -> web.Response:
    return web.Response(
        body=generate_metrics(),
        headers={"Content-Type": get_content_type()},
    )


def create_app(
    config: SocialAuthConfig,
    provisioning: UserProvisioningService,
    *,
    session_manager: SessionManager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> web.Application:
    """Build the login application.

    Args:
        config: Site and provider settings
        provisioning: Host service that creates or logs in local accounts
        session_manager: Session storage (a new in-memory manager by default)
        transport: Custom httpx transport for provider calls (tests)

    Returns:
        aiohttp Application with login, health and metrics routes
    """
    manager = session_manager or SessionManager(
        session_duration=config.site.session_duration,
    )

    app = web.Application(middlewares=[session_middleware(config.site)])
    app[SESSION_MANAGER_KEY] = manager

    SocialAuthController(config, provisioning, transport=transport).register_routes(app)
    app.router.add_get("/health", _handle_health_check)
    app.router.add_get("/metrics", _handle_metrics)

    async def _start_sessions(app: web.Application) -> None:
        await app[SESSION_MANAGER_KEY].start()

    async def _stop_sessions(app: web.Application) -> None:
        await app[SESSION_MANAGER_KEY].stop()

    app.on_startup.append(_start_sessions)
    app.on_cleanup.append(_stop_sessions)

    logger.info(
        "Login application created",
        login_path=config.site.login_path,
        proxy=bool(config.site.http_proxy),
    )
    return app
