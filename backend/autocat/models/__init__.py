"""SQLAlchemy models."""

from autocat.models.app_setting import AUTO_APPLY_THRESHOLD_KEY, AppSetting
from autocat.models.auto_category_correction import AutoCategoryCorrection, CorrectionType
from autocat.models.auto_category_rule import AutoCategoryRule
from autocat.models.auto_category_suggestion_log import (
    AutoCategorySuggestionLog,
    SuggestionAction,
    SuggestionSource,
)
from autocat.models.base import Base
from autocat.models.category import Category
from autocat.models.learned_category_pattern import LearnedCategoryPattern
from autocat.models.transaction import Transaction
from autocat.models.user import User

__all__ = [
    "Base",
    "AppSetting",
    "AUTO_APPLY_THRESHOLD_KEY",
    "User",
    "Category",
    "Transaction",
    "AutoCategoryRule",
    "LearnedCategoryPattern",
    "AutoCategoryCorrection",
    "AutoCategorySuggestionLog",
    "CorrectionType",
    "SuggestionAction",
    "SuggestionSource",
]
