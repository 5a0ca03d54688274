"""
Entity extraction and normalization.

Extraction asks the model for the organizations, people and technologies an
article mentions. Normalization then maps every organization/technology
mention (and every person's organization and technology's vendor) to its
canonical name and drops repeated mentions of the same canonical entity.
When two mentions collapse into one entity, the first mention wins.
"""

from typing import Optional

from db.models import OrganizationType, TechnologyCategory
from domain.aliases import canonical_organization, canonical_technology
from domain.entities import ExtractedEntities, OrganizationMention, PersonMention, TechnologyMention
from llm.openai_client import structured_output


EXTRACTION_TEMPERATURE = 0.2


def extract_entities(generator, title: str, content: str, article_id: Optional[int] = None) -> ExtractedEntities:
    """
    Extract entity mentions from an article with the text generator.

    Args:
        generator: Text generator
        title: Article title
        content: Article body
        article_id: Recorded in the call log

    Returns:
        Raw (not yet normalized) ExtractedEntities

    Raises:
        GenerationError: If the call fails or the response holds no valid JSON
    """
    data = {
        'title': title,
        'content': content or '',
        'organization_types': [t.value for t in OrganizationType],
        'technology_categories': [c.value for c in TechnologyCategory],
    }
    result = structured_output(
        generator,
        'entity_extraction',
        data,
        temperature=EXTRACTION_TEMPERATURE,
        context_data={'article_id': article_id} if article_id else None
    )

    return ExtractedEntities(
        organizations=[
            OrganizationMention(name=org.name, type=org.type, confidence=org.confidence)
            for org in result.organizations
        ],
        people=[
            PersonMention(name=p.name, title=p.title, organization=p.organization, confidence=p.confidence)
            for p in result.people
        ],
        technologies=[
            TechnologyMention(name=t.name, category=t.category, vendor=t.vendor, confidence=t.confidence)
            for t in result.technologies
        ],
    )


def normalize_entities(entities: ExtractedEntities) -> ExtractedEntities:
    """
    Canonicalize names and remove duplicate mentions.

    Organizations and technologies are deduplicated by canonical name,
    people by exact (trimmed) name. The first mention of each entity is kept.

    Example:
        >>> raw = ExtractedEntities(organizations=[
        ...     OrganizationMention('Cerner', 'vendor', 0.9),
        ...     OrganizationMention('Oracle Cerner', 'vendor', 0.7)])
        >>> [o.name for o in normalize_entities(raw).organizations]
        ['Oracle Health']
    """
    organizations = {}
    for org in entities.organizations:
        name = canonical_organization(org.name).strip()
        if name and name not in organizations:
            organizations[name] = OrganizationMention(name=name, type=org.type, confidence=org.confidence)

    people = {}
    for person in entities.people:
        name = person.name.strip()
        if name and name not in people:
            people[name] = PersonMention(
                name=name,
                title=person.title.strip() if person.title else None,
                organization=canonical_organization(person.organization),
                confidence=person.confidence,
            )

    technologies = {}
    for tech in entities.technologies:
        name = canonical_technology(tech.name).strip()
        if name and name not in technologies:
            technologies[name] = TechnologyMention(
                name=name,
                category=tech.category,
                vendor=canonical_organization(tech.vendor),
                confidence=tech.confidence,
            )

    return ExtractedEntities(
        organizations=list(organizations.values()),
        people=list(people.values()),
        technologies=list(technologies.values()),
    )
