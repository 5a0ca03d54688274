"""
Pydantic schema for voice-grounding excerpts pulled from a show transcript.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Excerpt(BaseModel):
    quote: str = Field(min_length=1, description="Verbatim quote, one to three sentences")
    topic: Optional[str] = Field(default=None, description="What the quote is about")


class StructuredOutput(BaseModel):
    """Characteristic quotes and the topics the episode covers."""

    model_config = ConfigDict(populate_by_name=True)

    excerpts: List[Excerpt] = Field(default_factory=list)
    topic_tags: List[str] = Field(default_factory=list, alias='topicTags')

    @field_validator('excerpts', mode='before')
    @classmethod
    def normalize_excerpts(cls, v):
        if not isinstance(v, list):
            return []
        excerpts = []
        for item in v:
            if isinstance(item, str):
                item = {'quote': item}
            if isinstance(item, dict):
                quote = str(item.get('quote') or item.get('text') or '').strip()
                if quote:
                    excerpts.append({'quote': quote, 'topic': item.get('topic')})
        return excerpts

    @field_validator('topic_tags', mode='before')
    @classmethod
    def clean_tags(cls, v):
        if not isinstance(v, list):
            return []
        return [str(tag).strip().lower() for tag in v if tag is not None and str(tag).strip()]
