"""Runtime settings stored in the database.

Values here can be changed on a running service and win over the
environment defaults in ``autocat.config``.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autocat.models.base import Base, TimestampMixin

AUTO_APPLY_THRESHOLD_KEY = "auto_apply_confidence_threshold"


class AppSetting(Base, TimestampMixin):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), default="string", nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
