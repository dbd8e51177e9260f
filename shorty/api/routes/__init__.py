"""Routes package initialization.

This module exports the route collection for the application.
"""

from fastapi import APIRouter

from shorty.api.routes import analytics, health, links, redirect, system_config
from shorty.core.config import settings

# Create root router
api_router = APIRouter()

for module in (links, analytics, system_config, health):
    api_router.include_router(module.router, prefix=settings.API_PREFIX)

# Short codes live at the root path, so this goes last
api_router.include_router(redirect.router)

__all__ = ["api_router"]
