"""
Pydantic schema for an analyst's viewpoint on an article.
"""

from typing import List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class StructuredOutput(BaseModel):
    """First-person analysis of one article in the analyst's own voice."""

    model_config = ConfigDict(populate_by_name=True)

    viewpoint: str = Field(min_length=1, description="3-5 paragraph analysis, first person")
    key_insights: List[str] = Field(default_factory=list, alias='keyInsights')
    confidence_score: float = Field(default=0.8, alias='confidenceScore')

    @field_validator('viewpoint', mode='before')
    @classmethod
    def strip_viewpoint(cls, v):
        return str(v or '').strip()

    @field_validator('key_insights', mode='before')
    @classmethod
    def clean_insights(cls, v):
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if item is not None and str(item).strip()]

    @field_validator('confidence_score', mode='before')
    @classmethod
    def clamp_confidence(cls, v):
        try:
            v = float(v)
        except (TypeError, ValueError):
            return 0.8
        if v == 0:
            return 0.8
        return max(0.0, min(1.0, v))
