"""Analytics endpoints: dashboard data, access-log search, export and maintenance."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.api import schemas
from shorty.api.dependencies import get_aggregator, get_analytics_service, get_base_url, get_link_service
from shorty.api.params import LimitParam, PageParam, access_log_filters
from shorty.api.routes.links import link_response, settings_response
from shorty.db.session import get_db
from shorty.repositories.access_log_repository import AccessLogFilters
from shorty.services.aggregation import Aggregator
from shorty.services.analytics import AnalyticsService
from shorty.services.links import LinkService

router = APIRouter(prefix="/analytics", tags=["analytics"])

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse, "description": "Invalid query"},
    404: {"model": schemas.ErrorResponse, "description": "Link not found"},
}


def _detail_response(detail: dict, base_url: str, link_service: LinkService) -> schemas.LinkAnalyticsResponse:
    settings_row = detail["settings"]
    return schemas.LinkAnalyticsResponse(
        link=link_response(detail["link"], base_url, link_service),
        settings=settings_response(settings_row) if settings_row is not None else None,
        total_visits=detail["total_visits"],
        unique_visitors=detail["unique_visitors"],
        visits_today=detail["visits_today"],
        visits_this_week=detail["visits_this_week"],
        visits_this_month=detail["visits_this_month"],
        device_distribution=detail["device_distribution"],
        top_countries=detail["top_countries"],
        top_referers=detail["top_referers"],
        recent_visits=[schemas.AccessLogResponse.model_validate(log) for log in detail["recent_visits"]],
    )


@router.get("/overview", response_model=schemas.OverviewResponse)
async def get_overview(
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_overview(db)


@router.get("/links/code/{short_code}", response_model=schemas.LinkAnalyticsResponse, responses=ERROR_RESPONSES)
async def get_link_analytics_by_code(
    short_code: str,
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    detail = await analytics_service.get_link_detail_by_code(db, short_code)
    return _detail_response(detail, base_url, link_service)


@router.get("/links/{link_id}", response_model=schemas.LinkAnalyticsResponse, responses=ERROR_RESPONSES)
async def get_link_analytics(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    detail = await analytics_service.get_link_detail(db, link_id)
    return _detail_response(detail, base_url, link_service)


@router.get("/top-links", response_model=List[schemas.LinkSummary], responses=ERROR_RESPONSES)
async def get_top_links(
    period: schemas.Period = Query(schemas.Period.ALL),
    limit: int = LimitParam(10),
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_top_links(db, period=period.value, limit=limit)


@router.get("/trend", response_model=List[schemas.TrendPoint], responses=ERROR_RESPONSES)
async def get_traffic_trend(
    link_id: Optional[int] = Query(None),
    days: int = Query(30, description="Number of days, 1 to 365"),
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_traffic_trend(db, link_id=link_id, days=days)


@router.get("/access-logs", response_model=schemas.AccessLogListResponse, responses=ERROR_RESPONSES)
async def query_access_logs(
    filters: AccessLogFilters = Depends(access_log_filters),
    page: int = PageParam(),
    limit: int = LimitParam(50),
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    result = await analytics_service.query_access_logs(db, filters, page=page, limit=limit)
    return schemas.AccessLogListResponse(
        items=[schemas.AccessLogResponse.model_validate(log) for log in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/export", responses=ERROR_RESPONSES)
async def export_access_logs(
    format: schemas.ExportFormat = Query(schemas.ExportFormat.CSV),
    filters: AccessLogFilters = Depends(access_log_filters),
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Download matching access logs as an attachment."""
    export = await analytics_service.export_access_logs(db, filters, fmt=format.value)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.get("/rate-limit", response_model=schemas.RateLimitResponse)
async def check_rate_limit(
    ip: str = Query(..., max_length=45, description="Client IP to check"),
    link_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    status = await analytics_service.check_rate_limit(db, ip, link_id=link_id)
    return schemas.RateLimitResponse(
        ip_address=status.ip_address,
        link_id=status.link_id,
        count=status.count,
        limit=status.limit,
        remaining=status.remaining,
        allowed=status.allowed,
        window_seconds=status.window_seconds,
        reset_at=status.reset_at,
    )


@router.post("/cleanup", response_model=schemas.CleanupResponse)
async def run_cleanup(
    db: AsyncSession = Depends(get_db),
    aggregator: Aggregator = Depends(get_aggregator),
    link_service: LinkService = Depends(get_link_service),
):
    """Apply retention, aggregate yesterday and delete expired links."""
    report = await aggregator.run_cleanup(db)
    expired = await link_service.cleanup_expired_links(db)
    return schemas.CleanupResponse(
        expired_links_deleted=expired,
        access_logs_deleted=report.access_logs_deleted,
        daily_stats_deleted=report.daily_stats_deleted,
        links_aggregated=report.links_aggregated,
        aggregated_day=report.aggregated_day,
    )
