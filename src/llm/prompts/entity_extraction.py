"""
Pydantic schema for entity extraction from healthcare IT articles.

The model lists the organizations, people and technologies an article
mentions, each with a self-reported confidence. Unknown types/categories
fall back to 'other'; confidences are clamped to [0, 1].
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


ORGANIZATION_TYPES = ['health_system', 'vendor', 'payer', 'startup', 'agency', 'other']
TECHNOLOGY_CATEGORIES = ['EHR', 'cybersecurity', 'AI', 'interoperability', 'analytics', 'telehealth', 'cloud', 'other']


def _clamp_confidence(value, default: float = 0.8) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, value))


def _named_items(value) -> list:
    """Keep only objects that carry a non-empty name."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict) and str(item.get('name') or '').strip()]


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class ExtractedOrganization(BaseModel):
    name: str = Field(description="Organization name as mentioned in the article")
    type: str = Field(default='other', description="One of: " + ", ".join(ORGANIZATION_TYPES))
    confidence: float = Field(default=0.8, description="How clearly the organization is mentioned (0.0-1.0)")

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return str(v).strip()

    @field_validator('type', mode='before')
    @classmethod
    def known_type(cls, v):
        v = str(v or '').lower().strip().replace(' ', '_')
        return v if v in ORGANIZATION_TYPES else 'other'

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp(cls, v):
        return _clamp_confidence(v)


class ExtractedPerson(BaseModel):
    name: str = Field(description="Full name of the person")
    title: Optional[str] = Field(default=None, description="Role or title (CIO, CMIO, CEO, ...)")
    organization: Optional[str] = Field(default=None, description="Organization the person works for")
    confidence: float = Field(default=0.8, description="How clearly the person is mentioned (0.0-1.0)")

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return str(v).strip()

    @field_validator('title', 'organization', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _optional_text(v)

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp(cls, v):
        return _clamp_confidence(v)


class ExtractedTechnology(BaseModel):
    name: str = Field(description="Product, platform or standard name")
    category: str = Field(default='other', description="One of: " + ", ".join(TECHNOLOGY_CATEGORIES))
    vendor: Optional[str] = Field(default=None, description="Organization that sells the technology")
    confidence: float = Field(default=0.8, description="How clearly the technology is mentioned (0.0-1.0)")

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return str(v).strip()

    @field_validator('category', mode='before')
    @classmethod
    def known_category(cls, v):
        lowered = str(v or '').lower().strip()
        for category in TECHNOLOGY_CATEGORIES:
            if category.lower() == lowered:
                return category
        return 'other'

    @field_validator('vendor', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _optional_text(v)

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp(cls, v):
        return _clamp_confidence(v)


class StructuredOutput(BaseModel):
    """Entities mentioned in one article."""

    organizations: List[ExtractedOrganization] = Field(default_factory=list)
    people: List[ExtractedPerson] = Field(default_factory=list)
    technologies: List[ExtractedTechnology] = Field(default_factory=list)

    @field_validator('organizations', 'people', 'technologies', mode='before')
    @classmethod
    def drop_unnamed(cls, v):
        return _named_items(v)
