"""
Pydantic schema for article summaries.

relevanceScore gates analyst viewpoint generation, so it is always coerced
into the 1-10 range; a missing or unreadable score counts as 5.
"""

from typing import List
from pydantic import BaseModel, ConfigDict, Field, field_validator


TOPIC_TAGS = [
    'cybersecurity', 'AI', 'EHR', 'interoperability', 'telehealth', 'analytics',
    'cloud', 'regulation', 'M&A', 'partnership', 'funding', 'leadership',
]

DEFAULT_RELEVANCE = 5


def _text_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class StructuredOutput(BaseModel):
    """Summary, takeaways, tags and relevance of one article."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(min_length=1, description="2-3 sentence summary of what happened, who is involved, and why it matters")
    takeaways: List[str] = Field(default_factory=list, description="3-5 key takeaways for healthcare IT sales/marketing teams")
    tags: List[str] = Field(default_factory=list, description="Topic tags chosen from: " + ", ".join(TOPIC_TAGS))
    relevance_score: int = Field(
        default=DEFAULT_RELEVANCE,
        alias='relevanceScore',
        description="1-10, where 10 is highly relevant for healthcare IT vendors"
    )

    @field_validator('summary', mode='before')
    @classmethod
    def strip_summary(cls, v):
        return str(v or '').strip()

    @field_validator('takeaways', 'tags', mode='before')
    @classmethod
    def clean_lists(cls, v):
        return _text_list(v)

    @field_validator('relevance_score', mode='before')
    @classmethod
    def clamp_relevance(cls, v):
        if v is None or isinstance(v, bool):
            return DEFAULT_RELEVANCE
        try:
            score = int(round(float(v)))
        except (TypeError, ValueError, OverflowError):
            return DEFAULT_RELEVANCE
        if score == 0:
            return DEFAULT_RELEVANCE
        return max(1, min(10, score))
