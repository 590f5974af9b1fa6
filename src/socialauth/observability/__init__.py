"""Observability."""

from socialauth.observability.metrics import (
    LOGIN_ATTEMPTS,
    PROVIDER_REQUEST_DURATION,
    generate_metrics,
    get_content_type,
)

__all__ = [
    "LOGIN_ATTEMPTS",
    "PROVIDER_REQUEST_DURATION",
    "generate_metrics",
    "get_content_type",
]
