"""HTTP entry points."""

from socialauth.server.app import create_app
from socialauth.server.controller import (
    FLASH_MESSAGES,
    SocialAuthController,
    flash_message,
)
from socialauth.server.middleware import (
    SESSION_KEY,
    SESSION_MANAGER_KEY,
    ensure_session,
    get_session,
    session_middleware,
)

__all__ = [
    "FLASH_MESSAGES",
    "SESSION_KEY",
    "SESSION_MANAGER_KEY",
    "SocialAuthController",
    "create_app",
    "ensure_session",
    "flash_message",
    "get_session",
    "session_middleware",
]
