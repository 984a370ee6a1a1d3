"""Learned pattern API routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.api.deps import get_current_user, get_db
from autocat.models.user import User
from autocat.schemas.auto_category_rule import RuleResponse
from autocat.schemas.learned_pattern import (
    ClearPatternsResult,
    ConvertPatternRequest,
    LearningStatistics,
    PatternResponse,
    PatternUpdate,
    PenalizeRequest,
)
from autocat.services.learning_service import LearningService

router = APIRouter()


@router.get("", response_model=list[PatternResponse])
async def list_patterns(
    active: bool | None = None,
    category_id: int | None = None,
    min_confidence: int | None = Query(None, ge=0, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List learned patterns, highest confidence first."""
    service = LearningService(db)
    return await service.list_patterns(current_user.id, active, category_id, min_confidence)


@router.get("/statistics", response_model=LearningStatistics)
async def statistics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    return await service.get_statistics(current_user.id)


@router.get("/top", response_model=list[PatternResponse])
async def top_patterns(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    return await service.get_top_patterns(current_user.id, limit)


@router.get("/underperforming", response_model=list[PatternResponse])
async def underperforming_patterns(
    min_confidence: int = Query(50, ge=0, le=100),
    min_occurrences: int = Query(1, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active patterns seen often enough but still below the confidence bar."""
    service = LearningService(db)
    return await service.get_underperforming_patterns(current_user.id, min_confidence, min_occurrences)


@router.post("/clear", response_model=ClearPatternsResult)
async def clear_patterns(
    category_id: int | None = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Disable all learned patterns, optionally for a single category."""
    service = LearningService(db)
    count = await service.reset_learning(current_user.id, category_id)
    return {"cleared_count": count}


@router.get("/{pattern_id}", response_model=PatternResponse)
async def get_pattern(
    pattern_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    return await service.get_user_pattern(pattern_id, current_user.id)


@router.patch("/{pattern_id}", response_model=PatternResponse)
async def update_pattern(
    pattern_id: int,
    data: PatternUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    pattern = await service.get_user_pattern(pattern_id, current_user.id)
    return await service.update_pattern(pattern, data)


@router.delete("/{pattern_id}", status_code=204)
async def delete_pattern(
    pattern_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    pattern = await service.get_user_pattern(pattern_id, current_user.id)
    await service.delete_pattern(pattern)


@router.post("/{pattern_id}/toggle", response_model=PatternResponse)
async def toggle_pattern(
    pattern_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    pattern = await service.get_user_pattern(pattern_id, current_user.id)
    return await service.toggle_pattern(pattern)


@router.post("/{pattern_id}/penalize", response_model=PatternResponse)
async def penalize_pattern(
    pattern_id: int,
    data: PenalizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = LearningService(db)
    pattern = await service.get_user_pattern(pattern_id, current_user.id)
    return await service.penalize_pattern(pattern, data.amount)


@router.post("/{pattern_id}/convert", response_model=RuleResponse, status_code=201)
async def convert_pattern(
    pattern_id: int,
    data: ConvertPatternRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Turn a learned pattern into an explicit rule; the pattern is disabled."""
    service = LearningService(db)
    pattern = await service.get_user_pattern(pattern_id, current_user.id)
    return await service.convert_to_rule(pattern, data.priority)
