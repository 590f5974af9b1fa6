"""Session cookie middleware.

Binds a request to the server-side Session named by its cookie. Sessions
are created lazily: only a route that stores something calls
ensure_session(), so cookieless health checks and metric scrapes
leave no session behind. A newly created session gets its id written
back as an HttpOnly, SameSite=Lax cookie, including on redirects raised
as exceptions.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog
from aiohttp import web

from socialauth.core.config import SiteSettings
from socialauth.session import Session, SessionManager

logger = structlog.get_logger()

SESSION_KEY = web.RequestKey("socialauth_session", Session)
SESSION_MANAGER_KEY = web.AppKey("session_manager", SessionManager)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def get_session(request: web.Request) -> Session | None:
    """Return the request's session, or None if it has none yet."""
    return request.get(SESSION_KEY)


async def ensure_session(request: web.Request) -> Session:
    """Return the request's session, creating one on first use."""
    session = request.get(SESSION_KEY)
    if session is None:
        session = await request.app[SESSION_MANAGER_KEY].create_session()
        request[SESSION_KEY] = session
        logger.debug("Session created", path=request.path)
    return session


def _set_session_cookie(
    response: web.StreamResponse, session: Session, site: SiteSettings
) -> None:
    if response.prepared:
        return
    response.set_cookie(
        site.session_cookie_name,
        session.session_id,
        max_age=int(session.remaining_seconds),
        httponly=True,
        secure=site.session_cookie_secure,
        samesite="Lax",
        path="/",
    )


def session_middleware(site: SiteSettings):
    """Build the middleware binding requests to the app's SessionManager."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        existing = None
        session_id = request.cookies.get(site.session_cookie_name)
        if session_id:
            existing = await request.app[SESSION_MANAGER_KEY].get_session(session_id)
        if existing is not None:
            request[SESSION_KEY] = existing

        try:
            response = await handler(request)
        except web.HTTPException as exc:
            created = get_session(request)
            if created is not None and created is not existing:
                _set_session_cookie(exc, created, site)
            raise

        created = get_session(request)
        if created is not None and created is not existing:
            _set_session_cookie(response, created, site)
        return response

    return middleware
