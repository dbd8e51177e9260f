"""Main application module.

This module initializes the FastAPI application, includes routes,
and configures middleware and exception handlers.
"""

import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shorty.api import api_router
from shorty.api.errors import register_exception_handlers
from shorty.core.access_log import setup_access_logging, shutdown_access_logging
from shorty.core.config import settings
from shorty.core.logging import setup_logging
from shorty.core.rate_limit import close_rate_limiting, initialize_rate_limiting, setup_rate_limiting
from shorty.core.tasks import drain_background_tasks
from shorty.db.base import create_db_and_tables
from shorty.db.session import SessionManager
from shorty.repositories.settings_repository import SystemConfigRepository
from shorty.scheduler.scheduler import scheduler_service
from shorty.services.system_config import SystemConfigService

# Setup logging
logger = setup_logging()


async def seed_system_config() -> None:
    """Insert the default system_config rows that are missing."""
    service = SystemConfigService(SystemConfigRepository())
    async with SessionManager.transaction_context() as db:
        inserted = await service.seed_defaults(db, overrides=settings.system_config_overrides())
    logger.info("System config seeded", inserted=inserted)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup tasks, then cleanup tasks on shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT.value}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    await create_db_and_tables()
    await seed_system_config()

    if settings.ACCESS_LOG_ENABLED:
        setup_access_logging()
        logger.info("Link access logging initialized")

    if rate_limit_backend is not None:
        logger.info("Initializing rate limit backend")
        await initialize_rate_limiting()

    if settings.SCHEDULER_ENABLED:
        try:
            logger.info("Initializing scheduler")
            scheduler_service.initialize()
            scheduler_service.start()
        except Exception as e:
            logger.error("Error starting scheduler", error=str(e))
            logger.error(f"Exception traceback: {traceback.format_exc()}")
            logger.critical("Scheduler could not be started")
    else:
        logger.info("Scheduler is disabled in settings")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")

    # Let pending rollups finish before the engine goes away
    await drain_background_tasks()
    await close_rate_limiting()

    if scheduler_service.is_running:
        try:
            scheduler_service.shutdown()
        except Exception as e:
            logger.error("Error shutting down scheduler", error=str(e))

    shutdown_access_logging()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

rate_limit_backend = None

# Setup rate limiting
if settings.RATE_LIMIT_ENABLED:
    try:
        rate_limit_backend = setup_rate_limiting(app)
    except Exception as e:
        logger.error("Error applying rate limit middleware", error=str(e))
        logger.warning("Rate limiting could not be enabled")
else:
    logger.info("Rate limiting is disabled in settings")

app.include_router(api_router)
register_exception_handlers(app)
