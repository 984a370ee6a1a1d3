"""Categorization API routes: suggestions, corrections and suggestion feedback."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.api.deps import get_current_user, get_db
from autocat.core.exceptions import NotFoundError
from autocat.models.user import User
from autocat.schemas.categorization import (
    CorrectionCreate,
    CorrectionResponse,
    LearningResultResponse,
    SuggestionActionRequest,
    SuggestionLogResponse,
    SuggestionResponse,
)
from autocat.services.categorization_service import CategorizationService
from autocat.services.learning_service import LearningService
from autocat.services.repositories import TransactionRepository

router = APIRouter()


@router.get("/transactions/{transaction_id}/suggestion", response_model=SuggestionResponse)
async def suggest_category(
    transaction_id: int,
    log: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Suggest a category for a transaction. With ``log=true`` the suggestion is recorded."""
    transaction = await TransactionRepository(db).get_for_user(transaction_id, current_user.id)
    if transaction is None:
        raise NotFoundError("Transaction", transaction_id)

    service = CategorizationService(db)
    suggestion = await service.suggest(transaction)
    response = SuggestionResponse(**suggestion.model_dump())
    if log:
        entry = await service.log_suggestion(transaction, suggestion)
        response.log_id = entry.id if entry else None
    return response


@router.post("/corrections", response_model=LearningResultResponse, status_code=201)
async def record_correction(
    data: CorrectionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record a category correction and learn from its description."""
    transaction = await TransactionRepository(db).get_for_user(data.transaction_id, current_user.id)
    if transaction is None:
        raise NotFoundError("Transaction", data.transaction_id)

    service = LearningService(db)
    result = await service.learn_from_correction(
        transaction,
        data.corrected_category_id,
        data.correction_type,
        data.confidence_at_correction,
    )
    return LearningResultResponse(
        correction=CorrectionResponse.model_validate(result.correction),
        keywords=result.keywords,
        created_patterns=result.created_patterns,
        reinforced_patterns=result.reinforced_patterns,
        failed_keywords=result.failed_keywords,
    )


@router.post("/suggestions/{log_id}/action", response_model=SuggestionLogResponse)
async def record_suggestion_action(
    log_id: int,
    data: SuggestionActionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record whether a logged suggestion was accepted, rejected, ignored or overridden."""
    service = LearningService(db)
    return await service.record_suggestion_action(log_id, current_user.id, data.action)
