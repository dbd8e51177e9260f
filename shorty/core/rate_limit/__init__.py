"""Redis-backed HTTP rate limiting with memory fallback."""

from shorty.core.rate_limit.auth import client_auth, on_blocked
from shorty.core.rate_limit.backends import FallbackRateLimitBackend
from shorty.core.rate_limit.middleware import (
    close_rate_limiting,
    initialize_rate_limiting,
    setup_rate_limiting,
)

__all__ = [
    "FallbackRateLimitBackend",
    "client_auth",
    "on_blocked",
    "setup_rate_limiting",
    "initialize_rate_limiting",
    "close_rate_limiting",
]
