"""Auto-category rule API routes."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.api.deps import get_current_user, get_db
from autocat.models.user import User
from autocat.schemas.auto_category_rule import (
    RuleCreate,
    RuleExport,
    RuleImportRequest,
    RuleImportResult,
    RuleReorderRequest,
    RuleResponse,
    RuleUpdate,
)
from autocat.schemas.categorization import CoverageReport, RuleOverlap
from autocat.services.categorization_service import CategorizationService
from autocat.services.rule_service import RuleService

router = APIRouter()


@router.get("", response_model=list[RuleResponse])
async def list_rules(
    archived: bool | None = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's rules in priority order."""
    service = RuleService(db)
    return await service.list_rules(current_user.id, archived)


@router.post("", response_model=RuleResponse, status_code=201)
async def create_rule(
    data: RuleCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    return await service.create_rule(data, current_user.id)


@router.get("/overlaps", response_model=list[RuleOverlap])
async def detect_overlaps(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pairs of active rules whose patterns contain one another (advisory)."""
    service = CategorizationService(db)
    return await service.detect_overlaps(current_user.id)


@router.get("/coverage", response_model=CoverageReport)
async def test_coverage(
    from_date: date,
    to_date: date,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Share of uncategorized transactions in the range that would be categorized today."""
    service = CategorizationService(db)
    return await service.test_coverage(current_user.id, from_date, to_date)


@router.post("/reorder", status_code=204)
async def reorder_rules(
    data: RuleReorderRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    await service.reorder(current_user.id, data.rules)


@router.get("/export", response_model=RuleExport)
async def export_rules(
    format: str = Query("json", pattern="^(json|csv)$"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    return await service.export_rules(current_user.id, format)


@router.post("/import", response_model=RuleImportResult)
async def import_rules(
    data: RuleImportRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    return await service.import_rules(current_user.id, data)


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    return await service.get_rule(rule_id, current_user.id)


@router.patch("/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: int,
    data: RuleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    return await service.update_rule(rule_id, data, current_user.id)


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    await service.delete_rule(rule_id, current_user.id)


@router.post("/{rule_id}/archive", response_model=RuleResponse)
async def archive_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pause a rule; it stops matching but is kept."""
    service = RuleService(db)
    return await service.archive_rule(rule_id, current_user.id)


@router.post("/{rule_id}/restore", response_model=RuleResponse)
async def restore_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = RuleService(db)
    return await service.restore_rule(rule_id, current_user.id)
