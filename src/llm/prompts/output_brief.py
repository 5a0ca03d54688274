"""
Pydantic schema for an audience-specific brief derived from an analyst viewpoint.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _text_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class StructuredOutput(BaseModel):
    """
    Brief for one output persona.

    relevanceRating rates how much the story matters to that audience (1-10).
    """

    model_config = ConfigDict(populate_by_name=True)

    brief: str = Field(min_length=1, description="3-4 paragraph brief written for the target audience")
    headline: str = Field(default='', description="One-line headline framed for the audience")
    key_takeaways: List[str] = Field(default_factory=list, alias='keyTakeaways')
    action_items: List[str] = Field(default_factory=list, alias='actionItems')
    relevance_rating: Optional[int] = Field(default=None, alias='relevanceRating')

    @field_validator('brief', 'headline', mode='before')
    @classmethod
    def strip_text(cls, v):
        return str(v or '').strip()

    @field_validator('key_takeaways', 'action_items', mode='before')
    @classmethod
    def clean_lists(cls, v):
        return _text_list(v)

    @field_validator('relevance_rating', mode='before')
    @classmethod
    def clamp_rating(cls, v):
        if v is None or isinstance(v, bool):
            return None
        try:
            rating = int(round(float(v)))
        except (TypeError, ValueError, OverflowError):
            return None
        return max(1, min(10, rating))
