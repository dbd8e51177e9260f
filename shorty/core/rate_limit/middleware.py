"""FastAPI rate limiting middleware setup."""

from typing import Optional

from fastapi import FastAPI
from loguru import logger
from ratelimit import RateLimitMiddleware, Rule

from shorty.core.config import settings
from shorty.core.rate_limit.auth import client_auth, on_blocked
from shorty.core.rate_limit.backends import FallbackRateLimitBackend

rate_limit_backend: Optional[FallbackRateLimitBackend] = None


def setup_rate_limiting(app: FastAPI) -> FallbackRateLimitBackend:
    """Attach the rate limiting middleware using the rules in settings."""
    global rate_limit_backend

    backend = FallbackRateLimitBackend(settings.REDIS_URI)
    rate_limit_backend = backend

    rules = {
        pattern: [Rule(**rule) for rule in rule_list]
        for pattern, rule_list in settings.RATE_LIMIT_CONFIG.items()
    }

    app.add_middleware(
        RateLimitMiddleware,
        authenticate=client_auth,
        backend=backend,
        config=rules,
        on_blocked=on_blocked,
    )
    logger.info("Rate limiting middleware added", patterns=list(rules))
    return backend


async def initialize_rate_limiting() -> None:
    if rate_limit_backend is not None:
        await rate_limit_backend.initialize()


async def close_rate_limiting() -> None:
    if rate_limit_backend is not None:
        await rate_limit_backend.close()
