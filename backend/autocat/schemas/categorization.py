"""Categorization schemas: suggestions, coverage, overlaps and corrections."""

from datetime import datetime

from pydantic import BaseModel, Field

from autocat.models.auto_category_correction import CorrectionType
from autocat.models.auto_category_suggestion_log import SuggestionAction, SuggestionSource


class Suggestion(BaseModel):
    """The engine's answer for one transaction.

    An empty suggestion (no category, confidence 0, no source) means nothing
    matched; it is a normal result, not an error.
    """

    suggested_category_id: int | None = None
    confidence_score: int = 0
    matched_keywords: list[str] = []
    source: SuggestionSource | None = None
    should_auto_apply: bool = False

    @classmethod
    def empty(cls) -> "Suggestion":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.suggested_category_id is None


class CategoryCoverage(BaseModel):
    category_id: int
    category_name: str
    count: int
    average_confidence: int
    source: SuggestionSource | None


class CoverageReport(BaseModel):
    total_uncategorized: int = 0
    would_be_categorized: int = 0
    coverage_percentage: int = 0
    by_category: list[CategoryCoverage] = []
    uncovered_reasons: dict[str, int] = {}


class RuleOverlap(BaseModel):
    rule_1_id: int
    rule_1_pattern: str
    rule_1_priority: int
    rule_2_id: int
    rule_2_pattern: str
    rule_2_priority: int
    warning: str


class CorrectionCreate(BaseModel):
    transaction_id: int
    corrected_category_id: int
    correction_type: CorrectionType
    confidence_at_correction: int = Field(0, ge=0, le=100)


class CorrectionResponse(BaseModel):
    id: int
    user_id: int
    transaction_id: int
    original_category_id: int | None
    corrected_category_id: int
    description_text: str
    correction_type: CorrectionType
    confidence_at_correction: int
    corrected_at: datetime

    model_config = {"from_attributes": True}


class LearningResultResponse(BaseModel):
    correction: CorrectionResponse
    keywords: list[str]
    created_patterns: int
    reinforced_patterns: int
    failed_keywords: list[str]


class SuggestionLogResponse(BaseModel):
    id: int
    transaction_id: int
    suggested_category_id: int | None
    confidence_score: int
    matched_keywords: list[str] | None
    source: SuggestionSource
    user_action: SuggestionAction | None
    suggested_at: datetime
    action_at: datetime | None

    model_config = {"from_attributes": True}


class SuggestionActionRequest(BaseModel):
    action: SuggestionAction


class SuggestionResponse(Suggestion):
    log_id: int | None = None
