"""Learning from corrections and upkeep of learned patterns.

A correction is recorded as an immutable audit row, then every keyword of the
corrected transaction's description reinforces (or creates) a learned
keyword -> category pattern. Rejected learned suggestions push confidence the
other way via ``penalize_pattern``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.core.exceptions import AlreadyExistsError, ForbiddenError, NotFoundError, ValidationError
from autocat.models.auto_category_correction import AutoCategoryCorrection, CorrectionType
from autocat.models.auto_category_suggestion_log import (
    AutoCategorySuggestionLog,
    SuggestionAction,
    SuggestionSource,
)
from autocat.models.learned_category_pattern import LearnedCategoryPattern
from autocat.models.transaction import Transaction
from autocat.schemas.auto_category_rule import RuleCreate
from autocat.schemas.learned_pattern import LearningStatistics, PatternUpdate
from autocat.services.keywords import extract_keywords
from autocat.services.repositories import (
    CategoryRepository,
    CorrectionRepository,
    PatternRepository,
    RuleRepository,
    SuggestionLogRepository,
)
from autocat.services.rule_service import RuleService

logger = structlog.get_logger()

DEFAULT_PENALTY = 10
VELOCITY_WINDOW_DAYS = 7


@dataclass
class LearningResult:
    correction: AutoCategoryCorrection
    keywords: list[str]
    created_patterns: int = 0
    reinforced_patterns: int = 0
    failed_keywords: list[str] = field(default_factory=list)


class LearningService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.patterns = PatternRepository(db)
        self.corrections = CorrectionRepository(db)
        self.categories = CategoryRepository(db)
        self.suggestion_logs = SuggestionLogRepository(db)

    # ── Corrections ────────────────────────────────────

    async def learn_from_correction(
        self,
        transaction: Transaction,
        corrected_category_id: int,
        correction_type: CorrectionType | str,
        confidence_at_correction: int = 0,
    ) -> LearningResult:
        """Record a user correction and learn keyword patterns from it.

        The audit row is flushed before any pattern is touched. Each keyword is
        then upserted in its own savepoint so a storage failure on one keyword
        only loses that keyword; failures are logged and reported back in
        ``LearningResult.failed_keywords``.
        """
        correction_type = await self._validate_correction(
            transaction, corrected_category_id, correction_type, confidence_at_correction
        )
        now = datetime.now(timezone.utc)

        correction = await self.corrections.add(AutoCategoryCorrection(
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            original_category_id=transaction.category_id,
            corrected_category_id=corrected_category_id,
            description_text=transaction.description or "",
            correction_type=correction_type.value,
            confidence_at_correction=confidence_at_correction,
            corrected_at=now,
        ))

        keywords = extract_keywords(transaction.description)
        result = LearningResult(correction=correction, keywords=keywords)

        for keyword in keywords:
            try:
                async with self.db.begin_nested():
                    _, created = await self.patterns.upsert_occurrence(
                        transaction.user_id, keyword, corrected_category_id, now
                    )
            except SQLAlchemyError as e:
                logger.error(
                    "learned_pattern_update_failed",
                    user_id=transaction.user_id,
                    keyword=keyword,
                    category_id=corrected_category_id,
                    error=str(e),
                )
                result.failed_keywords.append(keyword)
                continue
            if created:
                result.created_patterns += 1
            else:
                result.reinforced_patterns += 1

        logger.info(
            "correction_learned",
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            correction_type=correction_type.value,
            category_id=corrected_category_id,
            created=result.created_patterns,
            reinforced=result.reinforced_patterns,
            failed=len(result.failed_keywords),
        )
        return result

    async def _validate_correction(
        self,
        transaction: Transaction,
        corrected_category_id: int,
        correction_type: CorrectionType | str,
        confidence_at_correction: int,
    ) -> CorrectionType:
        try:
            correction_type = CorrectionType(correction_type)
        except ValueError:
            allowed = ", ".join(t.value for t in CorrectionType)
            raise ValidationError(f"Unknown correction type {correction_type!r} (expected one of: {allowed})") from None

        if not 0 <= confidence_at_correction <= 100:
            raise ValidationError("confidence_at_correction must be between 0 and 100")
        if not transaction.user_id:
            raise ValidationError("Transaction has no owner")

        category = await self.categories.get(corrected_category_id)
        if category is None or not category.is_visible_to(transaction.user_id):
            raise NotFoundError("Category", corrected_category_id)
        return correction_type

    # ── Pattern upkeep ─────────────────────────────────

    async def penalize_pattern(
        self, pattern: LearnedCategoryPattern, amount: int = DEFAULT_PENALTY
    ) -> LearnedCategoryPattern:
        """Lower a pattern's confidence; it is disabled once it drops below 30."""
        if amount < 0:
            raise ValidationError("Penalty amount must not be negative")
        pattern.apply_penalty(amount)
        await self.db.flush()
        logger.info(
            "learned_pattern_penalized",
            pattern_id=pattern.id,
            confidence=pattern.confidence_score,
            is_active=pattern.is_active,
        )
        return pattern

    async def reset_learning(self, user_id: int, category_id: int | None = None) -> int:
        """Disable a user's learned patterns, optionally for one category only.

        Rows are kept for the audit trail. Returns how many were disabled.
        """
        count = await self.patterns.deactivate_for_user(user_id, category_id)
        logger.info("learning_reset", user_id=user_id, category_id=category_id, disabled=count)
        return count

    async def get_statistics(self, user_id: int) -> LearningStatistics:
        week_ago = datetime.now(timezone.utc) - timedelta(days=VELOCITY_WINDOW_DAYS)
        aggregates = await self.patterns.aggregates_for_user(user_id, week_ago)
        by_type = await self.corrections.counts_by_type(user_id)

        total = aggregates["total"] or 0
        active = aggregates["active"] or 0
        recent = aggregates["recent"] or 0
        return LearningStatistics(
            total_patterns=total,
            active_patterns=active,
            disabled_patterns=total - active,
            average_confidence=int(aggregates["average"] or 0),
            highest_confidence_pattern=aggregates["highest"] or 0,
            lowest_confidence_pattern=aggregates["lowest_active"] or 0,
            total_corrections=sum(by_type.values()),
            corrections_by_type=by_type,
            patterns_created_last_week=recent,
            learning_velocity=round(recent / VELOCITY_WINDOW_DAYS, 2),
        )

    async def get_top_patterns(self, user_id: int, limit: int = 10) -> list[LearnedCategoryPattern]:
        return await self.patterns.top_for_user(user_id, limit)

    async def get_underperforming_patterns(
        self, user_id: int, min_confidence: int = 50, min_occurrences: int = 1
    ) -> list[LearnedCategoryPattern]:
        """Well-observed but low-trust patterns, weakest first: candidates for removal."""
        return await self.patterns.underperforming_for_user(user_id, min_confidence, min_occurrences)

    # ── Pattern management ─────────────────────────────

    async def list_patterns(
        self,
        user_id: int,
        is_active: bool | None = None,
        category_id: int | None = None,
        min_confidence: int | None = None,
    ) -> list[LearnedCategoryPattern]:
        return await self.patterns.list_for_user(user_id, is_active, category_id, min_confidence)

    async def get_user_pattern(self, pattern_id: int, user_id: int) -> LearnedCategoryPattern:
        pattern = await self.patterns.get(pattern_id)
        if not pattern:
            raise NotFoundError("LearnedCategoryPattern", pattern_id)
        if pattern.user_id != user_id:
            raise ForbiddenError()
        return pattern

    async def update_pattern(self, pattern: LearnedCategoryPattern, data: PatternUpdate) -> LearnedCategoryPattern:
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(pattern, key, value)
        await self.db.flush()
        return pattern

    async def toggle_pattern(self, pattern: LearnedCategoryPattern) -> LearnedCategoryPattern:
        pattern.is_active = not pattern.is_active
        await self.db.flush()
        return pattern

    async def delete_pattern(self, pattern: LearnedCategoryPattern) -> None:
        await self.db.delete(pattern)
        await self.db.flush()

    async def convert_to_rule(self, pattern: LearnedCategoryPattern, priority: int) -> dict:
        """Promote a learned keyword to an explicit rule and retire the pattern."""
        existing = await RuleRepository(self.db).find_by_pattern(pattern.user_id, pattern.keyword, pattern.category_id)
        if existing:
            raise AlreadyExistsError("A rule with this pattern already exists")
        rule = await RuleService(self.db).create_rule(
            RuleCreate(pattern=pattern.keyword, category_id=pattern.category_id, priority=priority),
            pattern.user_id,
        )
        pattern.is_active = False
        await self.db.flush()
        logger.info("learned_pattern_converted", pattern_id=pattern.id, rule_id=rule["id"])
        return rule

    # ── Suggestion feedback ────────────────────────────

    async def record_suggestion_action(
        self, log_id: int, user_id: int, action: SuggestionAction
    ) -> AutoCategorySuggestionLog:
        """Record what the user did with a suggestion.

        Rejecting a learned-keyword suggestion penalizes the patterns that produced it.
        """
        log = await self.suggestion_logs.get_for_user(log_id, user_id)
        if log is None:
            raise NotFoundError("AutoCategorySuggestionLog", log_id)

        log.user_action = action.value
        log.action_at = datetime.now(timezone.utc)

        if (
            action == SuggestionAction.REJECTED
            and log.source == SuggestionSource.LEARNED_KEYWORD.value
            and log.suggested_category_id is not None
        ):
            patterns = await self.patterns.active_for_keywords(
                user_id, log.suggested_category_id, log.matched_keywords or []
            )
            for pattern in patterns:
                await self.penalize_pattern(pattern)

        await self.db.flush()
        return log
