"""Short link redirection endpoint with access recording."""

import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import RedirectResponse

from shorty.api import schemas
from shorty.api.dependencies import get_access_recorder, get_link_service, get_session_scope
from shorty.core.decorators import log_link_access_decorator
from shorty.db.session import SessionScope, db_transaction, get_db
from shorty.models.link import Link
from shorty.models.settings import LinkSettings
from shorty.services.access import AccessRecorder, RequestInfo
from shorty.services.links import LinkService, LinkState

router = APIRouter(tags=["redirect"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "X-Robots-Tag": "noindex, nofollow",
}


async def record_access(
    recorder: AccessRecorder,
    session_scope: SessionScope,
    link: Link,
    info: RequestInfo,
    settings_row: LinkSettings = None,
    response_time_ms: int = None,
):
    """Record one visit in a separate database session.

    Args:
        recorder: Access recorder instance
        session_scope: Opens the background session
        link: The resolved link
        info: Client details captured from the request
        settings_row: The link's settings, if any
        response_time_ms: Time taken to resolve the redirect
    """
    short_code = link.short_code
    try:
        async with session_scope() as db:
            await recorder.record_visit(
                db,
                link,
                info,
                settings=settings_row,
                response_time_ms=response_time_ms,
            )
    except Exception as e:
        # Log but don't fail the redirect
        logger.error("Error recording access", short_code=short_code, error=str(e))


@router.get(
    "/{short_code}",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
    responses={
        404: {"model": schemas.ErrorResponse, "description": "Unknown short code"},
        410: {"description": "Link has expired"},
    },
)
@db_transaction()
@log_link_access_decorator()
async def redirect_to_original_url(
    request: Request,
    background_tasks: BackgroundTasks,
    short_code: str,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
    recorder: AccessRecorder = Depends(get_access_recorder),
    session_scope: SessionScope = Depends(get_session_scope),
):
    """Redirect to the original URL and record the visit as a background task."""
    started = time.perf_counter()
    resolution = await link_service.resolve(db, short_code, track=link_service.config.enable_analytics)

    if resolution.state is LinkState.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Short link not found")

    link = resolution.link
    if resolution.state is LinkState.EXPIRED:
        return JSONResponse(
            status_code=status.HTTP_410_GONE,
            content={
                "detail": "This link has expired",
                "short_code": link.short_code,
                "expires_at": link.expires_at.isoformat() if link.expires_at else None,
            },
            headers=NO_CACHE_HEADERS,
        )

    if link_service.config.enable_analytics:
        background_tasks.add_task(
            record_access,
            recorder,
            session_scope,
            link,
            RequestInfo.from_request(request),
            resolution.settings,
            int((time.perf_counter() - started) * 1000),
        )

    return RedirectResponse(
        url=link.original_url,
        status_code=resolution.redirect_type,
        headers=NO_CACHE_HEADERS,
    )
