"""Runtime settings API routes."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.api.deps import get_current_user, get_db
from autocat.models.app_setting import AUTO_APPLY_THRESHOLD_KEY
from autocat.models.user import User
from autocat.schemas.app_setting import AutoApplyThreshold
from autocat.services.categorization_service import CategorizationService
from autocat.services.repositories import SettingRepository

logger = structlog.get_logger()

router = APIRouter()


@router.get("/auto-apply-threshold", response_model=AutoApplyThreshold)
async def get_auto_apply_threshold(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = CategorizationService(db)
    return {"auto_apply_confidence_threshold": await service.get_auto_apply_threshold()}


@router.put("/auto-apply-threshold", response_model=AutoApplyThreshold)
async def set_auto_apply_threshold(
    data: AutoApplyThreshold,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change the threshold for every subsequent suggestion, without a restart."""
    await SettingRepository(db).set_value(
        AUTO_APPLY_THRESHOLD_KEY, data.auto_apply_confidence_threshold, value_type="integer"
    )
    logger.info(
        "setting_changed",
        key=AUTO_APPLY_THRESHOLD_KEY,
        value=data.auto_apply_confidence_threshold,
        changed_by=current_user.id,
    )
    return data
