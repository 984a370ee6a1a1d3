"""Suggestion engine: explicit rules first, learned patterns second.

Also hosts the read-only analyses built on top of it (rule overlap detection
and coverage testing) and the optional suggestion log.
"""

from datetime import date, datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.config import settings
from autocat.core.exceptions import ValidationError
from autocat.models.app_setting import AUTO_APPLY_THRESHOLD_KEY
from autocat.models.auto_category_suggestion_log import AutoCategorySuggestionLog, SuggestionSource
from autocat.models.transaction import Transaction
from autocat.schemas.categorization import CategoryCoverage, CoverageReport, RuleOverlap, Suggestion
from autocat.services.matching import match_learned_patterns, match_rules
from autocat.services.repositories import (
    CategoryRepository,
    PatternRepository,
    RuleRepository,
    SettingRepository,
    SuggestionLogRepository,
    TransactionRepository,
)

logger = structlog.get_logger()

OVERLAP_WARNING = "Patterns may overlap - check priority order"
REASON_MISSING_DESCRIPTION = "Missing description"
REASON_NO_MATCH = "No matching pattern"


class CategorizationService:
    def __init__(self, db: AsyncSession, auto_apply_threshold: int | None = None):
        self.db = db
        self.rules = RuleRepository(db)
        self.patterns = PatternRepository(db)
        self.transactions = TransactionRepository(db)
        self.categories = CategoryRepository(db)
        self.suggestion_logs = SuggestionLogRepository(db)
        self.app_settings = SettingRepository(db)
        self._auto_apply_threshold = auto_apply_threshold

    # ── Suggestions ────────────────────────────────────

    async def get_auto_apply_threshold(self) -> int:
        """The injected threshold, else the ``settings`` table row, else the environment default.

        Looked up on every call so an operator can change it on a running service.
        """
        if self._auto_apply_threshold is not None:
            return self._auto_apply_threshold
        return await self.app_settings.get_int(
            AUTO_APPLY_THRESHOLD_KEY, settings.auto_apply_confidence_threshold
        )

    async def should_auto_apply(self, confidence_score: int) -> bool:
        return confidence_score >= await self.get_auto_apply_threshold()

    async def suggest(self, transaction: Transaction) -> Suggestion:
        """Suggest a category for one transaction without modifying it."""
        description = transaction.description
        if not description or not description.strip() or not transaction.user_id:
            return Suggestion.empty()

        suggestion = await self.match_rules(transaction.user_id, description)
        if suggestion.is_empty:
            suggestion = await self.match_learned_patterns(transaction.user_id, description)
        if suggestion.is_empty:
            return Suggestion.empty()

        suggestion.should_auto_apply = await self.should_auto_apply(suggestion.confidence_score)
        logger.debug(
            "suggestion_made",
            transaction_id=transaction.id,
            category_id=suggestion.suggested_category_id,
            source=suggestion.source,
            confidence=suggestion.confidence_score,
            auto_apply=suggestion.should_auto_apply,
        )
        return suggestion

    async def match_rules(self, user_id: int, description: str) -> Suggestion:
        rules = await self.rules.active_for_matching(user_id)
        return match_rules(rules, description)

    async def match_learned_patterns(self, user_id: int, description: str) -> Suggestion:
        patterns = await self.patterns.suggestable_for_user(user_id)
        return match_learned_patterns(patterns, description)

    async def log_suggestion(
        self, transaction: Transaction, suggestion: Suggestion
    ) -> AutoCategorySuggestionLog | None:
        """Persist a suggestion for later analysis. Empty suggestions are not logged."""
        if suggestion.is_empty:
            return None
        return await self.suggestion_logs.add(
            AutoCategorySuggestionLog(
                user_id=transaction.user_id,
                transaction_id=transaction.id,
                suggested_category_id=suggestion.suggested_category_id,
                confidence_score=suggestion.confidence_score,
                matched_keywords=suggestion.matched_keywords,
                source=suggestion.source.value,
                suggested_at=datetime.now(timezone.utc),
            )
        )

    # ── Analyses ───────────────────────────────────────

    async def detect_overlaps(self, user_id: int) -> list[RuleOverlap]:
        """Pairs of active rules where one pattern contains the other.

        Advisory only: overlapping rules are legal, priority decides which wins.
        """
        rules = await self.rules.active_for_matching(user_id)
        overlaps = []
        for i, rule_1 in enumerate(rules):
            pattern_1 = rule_1.pattern.lower()
            for rule_2 in rules[i + 1:]:
                pattern_2 = rule_2.pattern.lower()
                if pattern_1 in pattern_2 or pattern_2 in pattern_1:
                    overlaps.append(RuleOverlap(
                        rule_1_id=rule_1.id,
                        rule_1_pattern=rule_1.pattern,
                        rule_1_priority=rule_1.priority,
                        rule_2_id=rule_2.id,
                        rule_2_pattern=rule_2.pattern,
                        rule_2_priority=rule_2.priority,
                        warning=OVERLAP_WARNING,
                    ))
        return overlaps

    async def test_coverage(self, user_id: int, from_date: date, to_date: date) -> CoverageReport:
        """How much of the uncategorized backlog the current rules and patterns would cover.

        Read-only: suggestions are computed but neither applied nor logged.
        """
        if to_date < from_date:
            raise ValidationError("to_date must be on or after from_date")

        transactions = await self.transactions.uncategorized_in_range(user_id, from_date, to_date)
        if not transactions:
            return CoverageReport()

        categorized = 0
        counts: dict[int, int] = {}
        confidence_totals: dict[int, int] = {}
        first_sources: dict[int, SuggestionSource | None] = {}
        uncovered_reasons: dict[str, int] = {}

        for txn in transactions:
            suggestion = await self.suggest(txn)
            if suggestion.is_empty:
                reason = REASON_NO_MATCH if txn.description else REASON_MISSING_DESCRIPTION
                uncovered_reasons[reason] = uncovered_reasons.get(reason, 0) + 1
                continue

            categorized += 1
            category_id = suggestion.suggested_category_id
            counts[category_id] = counts.get(category_id, 0) + 1
            confidence_totals[category_id] = confidence_totals.get(category_id, 0) + suggestion.confidence_score
            first_sources.setdefault(category_id, suggestion.source)

        names = await self.categories.names_by_id(list(counts))
        by_category = [
            CategoryCoverage(
                category_id=category_id,
                category_name=names.get(category_id, "Unknown"),
                count=count,
                average_confidence=confidence_totals[category_id] // count,
                source=first_sources[category_id],
            )
            for category_id, count in counts.items()
        ]

        total = len(transactions)
        report = CoverageReport(
            total_uncategorized=total,
            would_be_categorized=categorized,
            coverage_percentage=categorized * 100 // total,
            by_category=by_category,
            uncovered_reasons=uncovered_reasons,
        )
        logger.info(
            "coverage_tested",
            user_id=user_id,
            total_uncategorized=total,
            would_be_categorized=categorized,
            coverage_percentage=report.coverage_percentage,
        )
        return report
