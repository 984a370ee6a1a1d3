"""Auto-category rule model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autocat.models.base import Base, TimestampMixin


class AutoCategoryRule(Base, TimestampMixin):
    """A user-authored pattern that assigns a category.

    The pattern is a case-insensitive substring of the transaction description.
    Active rules are evaluated in ascending priority order and the first match
    wins, so a lower priority number always beats a broader rule further down.
    """

    __tablename__ = "auto_category_rules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    pattern: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    category = relationship("Category")

    __table_args__ = (
        UniqueConstraint("user_id", "priority", name="uq_auto_category_rules_user_priority"),
        Index("idx_auto_category_rules_user_active", "user_id", "is_active"),
        Index("idx_auto_category_rules_user_archived", "user_id", "archived_at"),
    )

    @property
    def is_currently_active(self) -> bool:
        return self.is_active and self.archived_at is None

    def matches(self, description: str) -> bool:
        return self.pattern.lower() in description.lower()
