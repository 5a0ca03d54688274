"""
Canonical names for healthcare IT organizations and technologies.

Mentions are matched after lowercasing and trimming. A mention with no alias
entry passes through unchanged, so unknown names are never dropped.
"""

from typing import Optional


# Alias (lowercase) -> canonical organization name
ORGANIZATION_ALIASES = {
    # Vendors
    'cerner': 'Oracle Health',
    'cerner corporation': 'Oracle Health',
    'oracle cerner': 'Oracle Health',
    'epic systems': 'Epic',
    'epic systems corporation': 'Epic',
    'microsoft corporation': 'Microsoft',
    'google health': 'Google',
    'google cloud': 'Google',
    'amazon web services': 'AWS',
    'amazon': 'AWS',
    'ibm watson health': 'IBM',
    'ibm watson': 'IBM',
    'meditech': 'MEDITECH',
    'allscripts': 'Veradigm',
    'allscripts healthcare': 'Veradigm',

    # Health systems
    'hca healthcare': 'HCA',
    'hca hospitals': 'HCA',
    'commonspirit health': 'CommonSpirit',
    'ascension health': 'Ascension',
    'kaiser permanente': 'Kaiser',
    'kaiser foundation': 'Kaiser',
    'intermountain healthcare': 'Intermountain',
    'intermountain health': 'Intermountain',
    'cleveland clinic foundation': 'Cleveland Clinic',
    'mayo clinic hospital': 'Mayo Clinic',
    'johns hopkins medicine': 'Johns Hopkins',
    'johns hopkins hospital': 'Johns Hopkins',

    # Government and agencies
    'office of the national coordinator': 'ONC',
    'office of national coordinator': 'ONC',
    'centers for medicare and medicaid services': 'CMS',
    'centers for medicare & medicaid services': 'CMS',
    'department of health and human services': 'HHS',
    'hhs': 'HHS',
    'food and drug administration': 'FDA',
    'veterans affairs': 'VA',
    'veterans health administration': 'VA',
}

# Alias (lowercase) -> canonical technology name
TECHNOLOGY_ALIASES = {
    'epic cosmos': 'Cosmos',
    'epic mychart': 'MyChart',
    'cerner millennium': 'Millennium',
    'oracle health millennium': 'Millennium',
    'fast healthcare interoperability resources': 'FHIR',
    'health level seven': 'HL7',
    'health level 7': 'HL7',
    'electronic health record': 'EHR',
    'electronic medical record': 'EMR',
    'artificial intelligence': 'AI',
    'machine learning': 'ML',
    'natural language processing': 'NLP',
    'clinical decision support': 'CDS',
    'revenue cycle management': 'RCM',
    'population health management': 'PHM',
    'patient portal': 'Patient Portal',
    'telehealth platform': 'Telehealth',
    'telemedicine': 'Telehealth',
    'virtual care': 'Telehealth',
}


def _lookup(table: dict, name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    return table.get(name.lower().strip(), name)


def canonical_organization(name: Optional[str]) -> Optional[str]:
    """
    Resolve an organization mention to its canonical name.

    Example:
        >>> canonical_organization('  Cerner Corporation ')
        'Oracle Health'
        >>> canonical_organization('Banner Health')
        'Banner Health'
    """
    return _lookup(ORGANIZATION_ALIASES, name)


def canonical_technology(name: Optional[str]) -> Optional[str]:
    """Resolve a technology mention to its canonical name."""
    return _lookup(TECHNOLOGY_ALIASES, name)


def is_alias(name: str) -> bool:
    """True if the mention matches a known organization or technology alias."""
    key = name.lower().strip()
    return key in ORGANIZATION_ALIASES or key in TECHNOLOGY_ALIASES
