"""Learned pattern schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class PatternResponse(BaseModel):
    id: int
    user_id: int
    category_id: int
    keyword: str
    occurrence_count: int
    confidence_score: int
    first_learned_at: datetime
    last_matched_at: datetime | None
    is_active: bool

    model_config = {"from_attributes": True}


class PatternUpdate(BaseModel):
    is_active: bool | None = None
    confidence_score: int | None = Field(None, ge=0, le=100)


class PenalizeRequest(BaseModel):
    amount: int = Field(10, ge=0, le=100)


class ConvertPatternRequest(BaseModel):
    priority: int = Field(..., ge=1, le=1000)


class ClearPatternsResult(BaseModel):
    cleared_count: int


class LearningStatistics(BaseModel):
    total_patterns: int = 0
    active_patterns: int = 0
    disabled_patterns: int = 0
    average_confidence: int = 0
    highest_confidence_pattern: int = 0
    lowest_confidence_pattern: int = 0
    total_corrections: int = 0
    corrections_by_type: dict[str, int] = {}
    patterns_created_last_week: int = 0
    learning_velocity: float = 0.0
