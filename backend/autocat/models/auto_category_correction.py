"""Auto-category correction model (append-only audit trail)."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autocat.models.base import Base, TimestampMixin


class CorrectionType(str, enum.Enum):
    AUTO_TO_MANUAL = "auto_to_manual"
    WRONG_AUTO_CHOICE = "wrong_auto_choice"
    MISSING_CATEGORY = "missing_category"
    UPDATED_LEARNED_PATTERN = "updated_learned_pattern"
    CONFIDENCE_OVERRIDE = "confidence_override"


class AutoCategoryCorrection(Base, TimestampMixin):
    """One row per user correction. Written once, never updated or deleted."""

    __tablename__ = "auto_category_corrections"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    original_category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    corrected_category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False, index=True)
    description_text: Mapped[str] = mapped_column(Text, nullable=False)
    correction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    confidence_at_correction: Mapped[int] = mapped_column(SmallInteger, default=0, nullable=False)
    corrected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_auto_category_corrections_user_corrected", "user_id", "corrected_at"),
    )
