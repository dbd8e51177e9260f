"""API layer: routes, request/response schemas and dependency providers."""

from shorty.api.routes import api_router

__all__ = ["api_router"]
