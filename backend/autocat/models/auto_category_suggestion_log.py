"""Suggestion log model, kept for analytics on how suggestions are received."""

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, SmallInteger, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from autocat.models.base import Base, TimestampMixin


class SuggestionSource(str, enum.Enum):
    RULE_EXACT = "rule_exact"
    LEARNED_KEYWORD = "learned_keyword"


class SuggestionAction(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    IGNORED = "ignored"
    OVERRIDDEN = "overridden"


class AutoCategorySuggestionLog(Base, TimestampMixin):
    __tablename__ = "auto_category_suggestions_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    suggested_category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    confidence_score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    matched_keywords: Mapped[list | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    source: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    user_action: Mapped[str | None] = mapped_column(String(16), nullable=True, index=True)
    suggested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    action_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_auto_category_suggestions_user_suggested", "user_id", "suggested_at"),
    )
