"""
Entity mentions extracted from article text.

Mentions flow from the extraction step through normalization into the
persistence layer. After normalization, organization and technology names
are canonical names.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class OrganizationMention:
    name: str
    type: str = 'other'
    confidence: float = 0.8


@dataclass
class PersonMention:
    name: str
    title: Optional[str] = None
    organization: Optional[str] = None
    confidence: float = 0.8


@dataclass
class TechnologyMention:
    name: str
    category: str = 'other'
    vendor: Optional[str] = None
    confidence: float = 0.8


@dataclass
class ExtractedEntities:
    """Organizations, people and technologies mentioned in one article."""
    organizations: List[OrganizationMention] = field(default_factory=list)
    people: List[PersonMention] = field(default_factory=list)
    technologies: List[TechnologyMention] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.organizations) + len(self.people) + len(self.technologies)

    def is_empty(self) -> bool:
        return self.total == 0
