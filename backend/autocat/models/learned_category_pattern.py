"""Learned category pattern model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, SmallInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autocat.models.base import Base, TimestampMixin

BASE_CONFIDENCE = 50
CONFIDENCE_PER_OCCURRENCE = 5
MAX_CONFIDENCE = 100

# A pattern stays active while its confidence is at or above this value.
MIN_ACTIVE_CONFIDENCE = 30
# ...but only suggests a category once it reaches this one.
MIN_SUGGEST_CONFIDENCE = 75


def confidence_for(occurrence_count: int) -> int:
    """50% on the first observation, +5 per occurrence, saturating at 100 after 10."""
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + occurrence_count * CONFIDENCE_PER_OCCURRENCE)


class LearnedCategoryPattern(Base, TimestampMixin):
    """A keyword -> category association inferred from user corrections."""

    __tablename__ = "learned_category_patterns"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False, index=True)
    keyword: Mapped[str] = mapped_column(String(255), nullable=False)
    occurrence_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    confidence_score: Mapped[int] = mapped_column(SmallInteger, default=BASE_CONFIDENCE, nullable=False)
    first_learned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category = relationship("Category")

    __table_args__ = (
        UniqueConstraint("user_id", "keyword", "category_id", name="uq_learned_patterns_user_keyword_category"),
        Index("idx_learned_patterns_user_active_confidence", "user_id", "is_active", "confidence_score"),
    )

    def record_occurrence(self, now: datetime) -> None:
        self.occurrence_count += 1
        self.confidence_score = confidence_for(self.occurrence_count)
        self.last_matched_at = now

    def apply_penalty(self, amount: int) -> None:
        self.confidence_score = max(0, self.confidence_score - amount)
        self.is_active = self.confidence_score >= MIN_ACTIVE_CONFIDENCE

    def should_suggest(self, threshold: int = MIN_SUGGEST_CONFIDENCE) -> bool:
        return self.is_active and self.confidence_score >= threshold
