"""Decorators shared by route handlers."""

import functools

from fastapi import HTTPException, Request

from shorty.core.access_log import log_link_access
from shorty.utils.network import extract_client_ip


def log_link_access_decorator():
    """Log every redirect request with its outcome, preserving the route signature.

    Returns:
        callable: Decorator function
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(request: Request, short_code: str, *args, **kwargs):
            ip_address = extract_client_ip(
                request.headers,
                request.client.host if request.client else None,
            )
            user_agent = request.headers.get("user-agent", "")

            try:
                response = await func(request=request, short_code=short_code, *args, **kwargs)
            except HTTPException as exc:
                log_link_access(short_code, ip_address, user_agent, outcome=str(exc.status_code))
                raise

            log_link_access(short_code, ip_address, user_agent, outcome=str(response.status_code))
            return response
        return wrapper
    return decorator
