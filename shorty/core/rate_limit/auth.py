"""Client identification and blocked-response handling for rate limiting."""

from typing import Dict, Tuple

from fastapi.responses import JSONResponse
from loguru import logger
from ratelimit.types import ASGIApp, Receive, Scope, Send

from shorty.core.config import settings
from shorty.utils.network import extract_client_ip


def _scope_headers(scope: Scope) -> Dict[str, str]:
    return {
        name.decode("latin1").lower(): value.decode("latin1")
        for name, value in scope.get("headers", [])
    }


def _scope_client_ip(scope: Scope) -> str:
    client = scope.get("client")
    return extract_client_ip(_scope_headers(scope), client[0] if client else None)


async def client_auth(scope: Scope) -> Tuple[str, str]:
    """Identify callers by proxy-aware client IP.

    Returns:
        Tuple of (user_id, group). Admin IPs land in the unlimited group,
        API paths in "api" and everything else (redirects) in "public".
    """
    client_ip = _scope_client_ip(scope)

    if client_ip in settings.RATE_LIMIT_ADMIN_IPS:
        return client_ip, "admin"

    path = scope.get("path", "")
    group = "api" if path.startswith(f"{settings.API_PREFIX}/") else "public"
    return client_ip, group


def on_blocked(retry_after: int) -> ASGIApp:
    """Build the ASGI app answering a blocked request with a JSON 429."""
    async def app_block_handler(scope: Scope, receive: Receive, send: Send) -> None:
        logger.warning(
            "Rate limit exceeded",
            ip=_scope_client_ip(scope),
            path=scope.get("path", ""),
            method=scope.get("method", ""),
            retry_after=retry_after,
        )

        response = JSONResponse(
            status_code=429,
            content={
                "detail": f"Rate limit exceeded. Please try again in {retry_after} seconds.",
                "retry_after": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )
        await response(scope, receive, send)

    return app_block_handler
