"""Auto-category rule schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _normalize_pattern(value: str) -> str:
    value = value.strip().lower()
    if not value:
        raise ValueError("Pattern must not be blank")
    return value


class RuleCreate(BaseModel):
    pattern: str = Field(..., max_length=255)
    category_id: int
    priority: int = Field(..., ge=1, le=1000)

    @field_validator("pattern")
    @classmethod
    def normalize_pattern(cls, v: str) -> str:
        return _normalize_pattern(v)


class RuleUpdate(BaseModel):
    pattern: str | None = Field(None, max_length=255)
    category_id: int | None = None
    priority: int | None = Field(None, ge=1, le=1000)
    is_active: bool | None = None

    @field_validator("pattern")
    @classmethod
    def normalize_pattern(cls, v: str | None) -> str | None:
        return _normalize_pattern(v) if v is not None else v


class RuleResponse(BaseModel):
    id: int
    user_id: int
    pattern: str
    category_id: int
    category_name: str | None = None
    priority: int
    is_active: bool
    archived_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RuleReorderItem(BaseModel):
    id: int
    priority: int = Field(..., ge=1, le=1000)


class RuleReorderRequest(BaseModel):
    rules: list[RuleReorderItem] = Field(..., min_length=1)


class RuleImportItem(BaseModel):
    pattern: str
    category_id: int
    priority: int | None = None


class RuleImportRequest(BaseModel):
    rules: list[RuleImportItem]
    merge_strategy: Literal["skip_duplicates", "merge"] = "skip_duplicates"


class RuleImportResult(BaseModel):
    imported: int
    skipped: int
    errors: list[str]


class RuleExport(BaseModel):
    data: list[RuleResponse] | str
    filename: str
