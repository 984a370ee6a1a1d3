"""Storage access for the categorization engine.

Each query the engine needs is a named method here so the services stay free
of SQL and can be exercised against any ``AsyncSession``. Nothing is cached:
rules and patterns are re-read on every call.
"""

from datetime import date, datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.models.app_setting import AppSetting
from autocat.models.auto_category_correction import AutoCategoryCorrection
from autocat.models.auto_category_rule import AutoCategoryRule
from autocat.models.auto_category_suggestion_log import AutoCategorySuggestionLog
from autocat.models.category import Category
from autocat.models.learned_category_pattern import (
    MIN_SUGGEST_CONFIDENCE,
    LearnedCategoryPattern,
    confidence_for,
)
from autocat.models.transaction import Transaction


class RuleRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _for_user(self, user_id: int):
        return select(AutoCategoryRule).where(AutoCategoryRule.user_id == user_id)

    async def active_for_matching(self, user_id: int) -> list[AutoCategoryRule]:
        """Active, non-archived rules in evaluation order (priority ascending)."""
        result = await self.db.execute(
            self._for_user(user_id)
            .where(
                AutoCategoryRule.is_active.is_(True),
                AutoCategoryRule.archived_at.is_(None),
            )
            .order_by(AutoCategoryRule.priority.asc(), AutoCategoryRule.id.asc())
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: int, archived: bool | None = None) -> list[AutoCategoryRule]:
        query = self._for_user(user_id)
        if archived is True:
            query = query.where(
                (AutoCategoryRule.archived_at.is_not(None)) | (AutoCategoryRule.is_active.is_(False))
            )
        elif archived is False:
            query = query.where(
                AutoCategoryRule.is_active.is_(True),
                AutoCategoryRule.archived_at.is_(None),
            )
        result = await self.db.execute(query.order_by(AutoCategoryRule.priority.asc()))
        return list(result.scalars().all())

    async def get(self, rule_id: int) -> AutoCategoryRule | None:
        return await self.db.get(AutoCategoryRule, rule_id)

    async def get_many(self, rule_ids: list[int]) -> list[AutoCategoryRule]:
        result = await self.db.execute(
            select(AutoCategoryRule).where(AutoCategoryRule.id.in_(rule_ids))
        )
        return list(result.scalars().all())

    async def find_by_priority(
        self, user_id: int, priority: int, exclude_id: int | None = None
    ) -> AutoCategoryRule | None:
        query = select(AutoCategoryRule).where(
            AutoCategoryRule.user_id == user_id,
            AutoCategoryRule.priority == priority,
        )
        if exclude_id is not None:
            query = query.where(AutoCategoryRule.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def find_by_pattern(self, user_id: int, pattern: str, category_id: int) -> AutoCategoryRule | None:
        result = await self.db.execute(
            self._for_user(user_id).where(
                func.lower(AutoCategoryRule.pattern) == pattern.lower(),
                AutoCategoryRule.category_id == category_id,
            )
        )
        return result.scalars().first()

    async def max_priority(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.max(AutoCategoryRule.priority)).where(AutoCategoryRule.user_id == user_id)
        )
        return result.scalar() or 0

    async def set_priority(self, rule_id: int, priority: int) -> None:
        await self.db.execute(
            update(AutoCategoryRule)
            .where(AutoCategoryRule.id == rule_id)
            .values(priority=priority)
        )


class PatternRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def suggestable_for_user(
        self, user_id: int, min_confidence: int = MIN_SUGGEST_CONFIDENCE
    ) -> list[LearnedCategoryPattern]:
        result = await self.db.execute(
            select(LearnedCategoryPattern)
            .where(
                LearnedCategoryPattern.user_id == user_id,
                LearnedCategoryPattern.is_active.is_(True),
                LearnedCategoryPattern.confidence_score >= min_confidence,
            )
            .order_by(LearnedCategoryPattern.id.asc())
        )
        return list(result.scalars().all())

    async def list_for_user(
        self,
        user_id: int,
        is_active: bool | None = None,
        category_id: int | None = None,
        min_confidence: int | None = None,
    ) -> list[LearnedCategoryPattern]:
        query = select(LearnedCategoryPattern).where(LearnedCategoryPattern.user_id == user_id)
        if is_active is not None:
            query = query.where(LearnedCategoryPattern.is_active.is_(is_active))
        if category_id is not None:
            query = query.where(LearnedCategoryPattern.category_id == category_id)
        if min_confidence is not None:
            query = query.where(LearnedCategoryPattern.confidence_score >= min_confidence)
        result = await self.db.execute(
            query.order_by(LearnedCategoryPattern.confidence_score.desc(), LearnedCategoryPattern.id.asc())
        )
        return list(result.scalars().all())

    async def get(self, pattern_id: int) -> LearnedCategoryPattern | None:
        return await self.db.get(LearnedCategoryPattern, pattern_id)

    async def _get_for_update(
        self, user_id: int, keyword: str, category_id: int
    ) -> LearnedCategoryPattern | None:
        result = await self.db.execute(
            select(LearnedCategoryPattern)
            .where(
                LearnedCategoryPattern.user_id == user_id,
                LearnedCategoryPattern.keyword == keyword,
                LearnedCategoryPattern.category_id == category_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_occurrence(
        self, user_id: int, keyword: str, category_id: int, now: datetime
    ) -> tuple[LearnedCategoryPattern, bool]:
        """Create the (user, keyword, category) pattern or count one more occurrence of it.

        Returns the pattern and whether it was inserted. The existing row is
        locked before it is incremented, and an insert that loses a race
        against a concurrent insert falls back to incrementing the winner.
        """
        keyword = keyword.lower()
        pattern = await self._get_for_update(user_id, keyword, category_id)

        if pattern is None:
            pattern = LearnedCategoryPattern(
                user_id=user_id,
                keyword=keyword,
                category_id=category_id,
                occurrence_count=1,
                confidence_score=confidence_for(1),
                first_learned_at=now,
                last_matched_at=now,
                is_active=True,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(pattern)
                return pattern, True
            except IntegrityError:
                pattern = await self._get_for_update(user_id, keyword, category_id)
                if pattern is None:
                    raise

        pattern.record_occurrence(now)
        await self.db.flush()
        return pattern, False

    async def deactivate_for_user(self, user_id: int, category_id: int | None = None) -> int:
        query = update(LearnedCategoryPattern).where(
            LearnedCategoryPattern.user_id == user_id,
            LearnedCategoryPattern.is_active.is_(True),
        )
        if category_id is not None:
            query = query.where(LearnedCategoryPattern.category_id == category_id)
        result = await self.db.execute(
            query.values(is_active=False).returning(LearnedCategoryPattern.id)
        )
        return len(result.scalars().all())

    async def top_for_user(self, user_id: int, limit: int) -> list[LearnedCategoryPattern]:
        result = await self.db.execute(
            select(LearnedCategoryPattern)
            .where(
                LearnedCategoryPattern.user_id == user_id,
                LearnedCategoryPattern.is_active.is_(True),
            )
            .order_by(
                LearnedCategoryPattern.confidence_score.desc(),
                LearnedCategoryPattern.occurrence_count.desc(),
                LearnedCategoryPattern.id.asc(),
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def underperforming_for_user(
        self, user_id: int, min_confidence: int, min_occurrences: int
    ) -> list[LearnedCategoryPattern]:
        result = await self.db.execute(
            select(LearnedCategoryPattern)
            .where(
                LearnedCategoryPattern.user_id == user_id,
                LearnedCategoryPattern.is_active.is_(True),
                LearnedCategoryPattern.confidence_score < min_confidence,
                LearnedCategoryPattern.occurrence_count >= min_occurrences,
            )
            .order_by(LearnedCategoryPattern.confidence_score.asc(), LearnedCategoryPattern.id.asc())
        )
        return list(result.scalars().all())

    async def active_for_keywords(
        self, user_id: int, category_id: int, keywords: list[str]
    ) -> list[LearnedCategoryPattern]:
        if not keywords:
            return []
        result = await self.db.execute(
            select(LearnedCategoryPattern).where(
                LearnedCategoryPattern.user_id == user_id,
                LearnedCategoryPattern.category_id == category_id,
                LearnedCategoryPattern.is_active.is_(True),
                LearnedCategoryPattern.keyword.in_([k.lower() for k in keywords]),
            )
        )
        return list(result.scalars().all())

    async def aggregates_for_user(self, user_id: int, learned_since: datetime) -> dict:
        """Counts and confidence bounds over all of a user's patterns."""
        active = LearnedCategoryPattern.is_active.is_(True)
        result = await self.db.execute(
            select(
                func.count(LearnedCategoryPattern.id).label("total"),
                func.count(LearnedCategoryPattern.id).filter(active).label("active"),
                func.avg(LearnedCategoryPattern.confidence_score).label("average"),
                func.max(LearnedCategoryPattern.confidence_score).label("highest"),
                func.min(LearnedCategoryPattern.confidence_score).filter(active).label("lowest_active"),
                func.count(LearnedCategoryPattern.id)
                .filter(LearnedCategoryPattern.first_learned_at >= learned_since)
                .label("recent"),
            ).where(LearnedCategoryPattern.user_id == user_id)
        )
        return dict(result.one()._mapping)


class CorrectionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, correction: AutoCategoryCorrection) -> AutoCategoryCorrection:
        self.db.add(correction)
        await self.db.flush()
        return correction

    async def counts_by_type(self, user_id: int) -> dict[str, int]:
        result = await self.db.execute(
            select(AutoCategoryCorrection.correction_type, func.count(AutoCategoryCorrection.id))
            .where(AutoCategoryCorrection.user_id == user_id)
            .group_by(AutoCategoryCorrection.correction_type)
        )
        return {correction_type: count for correction_type, count in result.all()}


class TransactionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_user(self, transaction_id: int, user_id: int) -> Transaction | None:
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.user_id == user_id,
                Transaction.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def uncategorized_in_range(self, user_id: int, from_date: date, to_date: date) -> list[Transaction]:
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.category_id.is_(None),
                Transaction.deleted_at.is_(None),
                Transaction.date >= from_date,
                Transaction.date <= to_date,
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        return list(result.scalars().all())


class CategoryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, category_id: int) -> Category | None:
        return await self.db.get(Category, category_id)

    async def names_by_id(self, category_ids: list[int]) -> dict[int, str]:
        if not category_ids:
            return {}
        result = await self.db.execute(
            select(Category.id, Category.name).where(Category.id.in_(category_ids))
        )
        return {category_id: name for category_id, name in result.all()}


class SuggestionLogRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, log: AutoCategorySuggestionLog) -> AutoCategorySuggestionLog:
        self.db.add(log)
        await self.db.flush()
        return log

    async def get_for_user(self, log_id: int, user_id: int) -> AutoCategorySuggestionLog | None:
        result = await self.db.execute(
            select(AutoCategorySuggestionLog).where(
                AutoCategorySuggestionLog.id == log_id,
                AutoCategorySuggestionLog.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()


class SettingRepository:
    """Runtime settings, read straight from the table on every call."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: str) -> AppSetting | None:
        result = await self.db.execute(
            select(AppSetting).where(AppSetting.key == key).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def set_value(self, key: str, value, value_type: str = "string") -> AppSetting:
        setting = await self.get(key)
        if setting is None:
            setting = AppSetting(key=key, type=value_type)
            self.db.add(setting)
        setting.value = str(value)
        await self.db.flush()
        return setting

    async def get_int(self, key: str, default: int) -> int:
        """An integer setting; a missing row or unparsable value gives ``default``."""
        setting = await self.get(key)
        if setting is None or setting.value is None:
            return default
        try:
            return int(setting.value.strip())
        except ValueError:
            return default
