"""Link management endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.api import schemas
from shorty.api.dependencies import get_base_url, get_link_service
from shorty.api.params import LimitParam, PageParam
from shorty.db.session import get_db
from shorty.models.link import Link, LinkUpdate
from shorty.models.settings import LinkSettings
from shorty.services.links import LinkService

router = APIRouter(prefix="/links", tags=["links"])

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse, "description": "Invalid input"},
    404: {"model": schemas.ErrorResponse, "description": "Link not found"},
}


def link_response(link: Link, base_url: str, service: LinkService) -> schemas.LinkResponse:
    return schemas.LinkResponse(
        id=link.id,
        short_code=link.short_code,
        original_url=link.original_url,
        short_url=f"{base_url.rstrip('/')}/{link.short_code}",
        created_at=link.created_at,
        expires_at=link.expires_at,
        access_count=link.access_count,
        is_expired=link.is_expired(service.clock()),
    )


def settings_response(row: LinkSettings) -> schemas.LinkSettingsResponse:
    response = schemas.LinkSettingsResponse.model_validate(row)
    response.has_password = bool(row.password)
    return response


@router.post(
    "",
    response_model=schemas.LinkResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": schemas.ErrorResponse, "description": "Invalid URL or custom slug"},
        409: {"model": schemas.ErrorResponse, "description": "Custom slug already in use"},
        503: {"model": schemas.ErrorResponse, "description": "No free short code found"},
    },
)
async def create_link(
    link_data: schemas.LinkCreateRequest,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    """Shorten a URL, reusing an existing link for the same URL when no custom slug is given."""
    link = await link_service.create_link(
        db=db,
        original_url=link_data.original_url,
        custom_slug=link_data.custom_slug,
        expires_at=link_data.expires_at,
        expire_days=link_data.expire_days,
    )
    return link_response(link, base_url, link_service)


@router.get("", response_model=schemas.LinkListResponse, responses=ERROR_RESPONSES)
async def list_links(
    page: int = PageParam(),
    limit: int = LimitParam(),
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    result = await link_service.list_links(db, page=page, limit=limit)
    return schemas.LinkListResponse(
        items=[link_response(link, base_url, link_service) for link in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/suggestions", response_model=schemas.SuggestionsResponse)
async def suggest_slugs(
    base: Optional[str] = Query(None, max_length=16, description="Preferred slug to derive variants from"),
    count: int = Query(5, ge=1, le=20),
    link_service: LinkService = Depends(get_link_service),
):
    return schemas.SuggestionsResponse(base=base, suggestions=link_service.suggest_slugs(base, count))


@router.get("/code/{short_code}", response_model=schemas.LinkResponse, responses=ERROR_RESPONSES)
async def get_link_by_code(
    short_code: str,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    """Raw lookup, also answering for expired links."""
    link = await link_service.get_link_by_code(db, short_code)
    return link_response(link, base_url, link_service)


@router.get("/{link_id}", response_model=schemas.LinkResponse, responses=ERROR_RESPONSES)
async def get_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    link = await link_service.get_link(db, link_id)
    return link_response(link, base_url, link_service)


@router.put("/{link_id}", response_model=schemas.LinkResponse, responses=ERROR_RESPONSES)
async def update_link(
    link_id: int,
    update: schemas.LinkUpdateRequest,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
    base_url: str = Depends(get_base_url),
):
    changes = LinkUpdate(**update.model_dump(exclude_unset=True))
    link = await link_service.update_link(db, link_id, changes)
    return link_response(link, base_url, link_service)


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT, responses=ERROR_RESPONSES)
async def delete_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
):
    await link_service.delete_link(db, link_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{link_id}/settings", response_model=schemas.LinkSettingsResponse, responses=ERROR_RESPONSES)
async def get_link_settings(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
):
    return settings_response(await link_service.get_settings(db, link_id))


@router.put("/{link_id}/settings", response_model=schemas.LinkSettingsResponse, responses=ERROR_RESPONSES)
async def update_link_settings(
    link_id: int,
    update: schemas.LinkSettingsUpdateRequest,
    db: AsyncSession = Depends(get_db),
    link_service: LinkService = Depends(get_link_service),
):
    row = await link_service.update_settings(db, link_id, update.model_dump(exclude_unset=True))
    return settings_response(row)
