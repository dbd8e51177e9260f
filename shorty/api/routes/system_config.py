"""Administrative endpoints over the system configuration table."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shorty.api import schemas
from shorty.api.dependencies import get_system_config_service
from shorty.db.session import get_db
from shorty.services.system_config import SystemConfigService

router = APIRouter(prefix="/config", tags=["config"])


@router.get("", response_model=List[schemas.SystemConfigResponse])
async def list_config(
    db: AsyncSession = Depends(get_db),
    config_service: SystemConfigService = Depends(get_system_config_service),
):
    return await config_service.list_config(db)


@router.put(
    "/{key}",
    response_model=schemas.SystemConfigResponse,
    responses={400: {"model": schemas.ErrorResponse, "description": "Unknown key or invalid value"}},
)
async def set_config(
    key: str,
    update: schemas.SystemConfigUpdateRequest,
    db: AsyncSession = Depends(get_db),
    config_service: SystemConfigService = Depends(get_system_config_service),
):
    """Change one value; takes effect on the next request or job that reads it."""
    return await config_service.set_config(db, key, update.value)
