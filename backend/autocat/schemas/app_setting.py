"""Runtime setting schemas."""

from pydantic import BaseModel


class AutoApplyThreshold(BaseModel):
    """Any integer is accepted: above 100 never auto-applies, below 0 always does."""

    auto_apply_confidence_threshold: int
