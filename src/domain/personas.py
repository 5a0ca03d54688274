"""
Persona registry.

Two layers of personas:

- Analysts (Bill Russell, Drex DeFord, Sarah Richardson) each produce an
  independent viewpoint on an article. One analyst is routed per article.
- Output persona templates (CIO, CISO, sales rep, general HIT professional)
  repackage an analyst's viewpoint into a brief for that audience. Every
  template gets a brief; templates are never routed.

The roundtable persona ("newsday") combines the three analysts' viewpoints
on the same article into one discussion.

Voice profiles and brief templates are plain-text files in profiles/.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Tuple


PROFILES_DIR = Path(__file__).parent / 'profiles'

# Prefix of the persona rows that hold output briefs
OUTPUT_PERSONA_PREFIX = 'output-'


class UnknownPersonaError(Exception):
    """A persona slug was requested that is not defined."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Unknown persona slug: {slug}")


@lru_cache(maxsize=None)
def load_profile(name: str) -> str:
    """
    Load a profile text from profiles/{name}.md.

    Raises:
        UnknownPersonaError: If no profile file exists for the name
    """
    path = PROFILES_DIR / f"{name}.md"
    if not path.exists():
        raise UnknownPersonaError(name)
    return path.read_text(encoding='utf-8').strip()


@dataclass(frozen=True)
class AnalystPersona:
    """A voice that independently analyzes an article."""
    kind: ClassVar[str] = 'analyst'

    slug: str
    name: str
    title: str
    background: str
    framework: str
    show_names: Tuple[str, ...] = ()

    @property
    def profile(self) -> str:
        return load_profile(self.slug)


@dataclass(frozen=True)
class RoundtablePersona:
    """Multi-voice synthesis of all analysts' viewpoints."""
    kind: ClassVar[str] = 'roundtable'

    slug: str
    name: str
    title: str
    background: str
    framework: str
    show_names: Tuple[str, ...] = ()

    @property
    def profile(self) -> str:
        return load_profile(self.slug)


@dataclass(frozen=True)
class OutputPersonaTemplate:
    """Template that repackages an analyst viewpoint for a target audience."""
    kind: ClassVar[str] = 'output'

    slug: str
    name: str
    title: str
    description: str

    @property
    def persona_slug(self) -> str:
        """Slug of the persona row that stores this template's briefs."""
        return f"{OUTPUT_PERSONA_PREFIX}{self.slug}"

    @property
    def prompt(self) -> str:
        return load_profile(f"brief-{self.slug}")


ANALYSTS: Dict[str, AnalystPersona] = {
    'bill-russell': AnalystPersona(
        slug='bill-russell',
        name='Bill Russell',
        title='CEO/Founder, This Week Health',
        background=(
            'Former CIO of St. Joseph Health, a 16-hospital $6.5B health system. 26 years in IT '
            'consulting across telecom, banking, engineering. Founded This Week Health and the '
            '229 Project. Hosts Keynote and Today shows.'
        ),
        framework='Keep the trains running, lay new track, build airplanes',
        show_names=('Keynote', 'Today'),
    ),
    'drex-deford': AnalystPersona(
        slug='drex-deford',
        name='Drex DeFord',
        title='President, 229 Cyber & Risk',
        background=(
            '20+ years U.S. Air Force including CTO for Air Force Health System worldwide operations. '
            "Former CIO at Scripps Health, Seattle Children's Hospital, Steward Health Care. Executive "
            'Healthcare Strategist at CrowdStrike. CHIME Board Chairman 2012. Hosts UnHack and '
            '2-Minute Drill shows.'
        ),
        framework='Cyber-safety is patient-safety',
        show_names=('UnHack', '2-Minute Drill'),
    ),
    'sarah-richardson': AnalystPersona(
        slug='sarah-richardson',
        name='Sarah Richardson',
        title='President, 229 Executive Development',
        background=(
            'Former CIO at HCA Healthcare (Division CIO, 10 years), NCH Healthcare System, VP of IT '
            'Change Leadership at OptumCare, SVP/CIO at Tivity Health. ICF-certified executive coach. '
            'CEO of Concierge Leadership. CHIME Fellow and Board Member. Hosts Flourish show.'
        ),
        framework='Leadership and workforce transformation',
        show_names=('Flourish',),
    ),
}

ROUNDTABLE = RoundtablePersona(
    slug='newsday',
    name='Newsday Roundtable',
    title='Combined Analysis - Bill, Drex & Sarah',
    background=(
        'Weekly roundtable news discussion featuring all three TWH hosts analyzing healthcare IT news '
        'from complementary CIO perspectives: strategic, cybersecurity, and leadership.'
    ),
    framework='Multi-perspective healthcare IT analysis',
    show_names=('Newsday',),
)

OUTPUT_PERSONAS: Dict[str, OutputPersonaTemplate] = {
    'cio': OutputPersonaTemplate(
        slug='cio',
        name='CIO Brief',
        title='Chief Information Officer',
        description=(
            'Strategic IT leader responsible for technology decisions, vendor relationships, budget, '
            'and digital transformation at a health system.'
        ),
    ),
    'ciso': OutputPersonaTemplate(
        slug='ciso',
        name='CISO Brief',
        title='Chief Information Security Officer',
        description=(
            'Security leader responsible for cybersecurity posture, risk management, compliance, '
            'and incident response at a health system.'
        ),
    ),
    'sales-rep': OutputPersonaTemplate(
        slug='sales-rep',
        name='Vendor Sales Brief',
        title='Healthcare IT Sales Representative',
        description=(
            'Vendor sales rep selling technology solutions (EHR, cybersecurity, cloud, AI) into health '
            'systems. Needs buyer intelligence and positioning angles.'
        ),
    ),
    'general-hit': OutputPersonaTemplate(
        slug='general-hit',
        name='Healthcare IT Brief',
        title='General Healthcare IT Professional',
        description=(
            'Anyone working in healthcare IT (analysts, project managers, engineers, consultants) '
            'who needs to stay current on industry trends.'
        ),
    ),
}


def get_analyst(slug: str) -> AnalystPersona:
    """
    Look up an analyst by slug.

    Raises:
        UnknownPersonaError: If the slug is not an analyst
    """
    try:
        return ANALYSTS[slug]
    except KeyError:
        raise UnknownPersonaError(slug) from None


def analyst_slugs() -> List[str]:
    """Slugs of the individual analysts (the roundtable excluded)."""
    return list(ANALYSTS)


def build_persona_prompt(slug: str, transcript_excerpts: Optional[List[str]] = None) -> str:
    """
    Build the system prompt of an analyst or the roundtable persona.

    Recent show excerpts, when given, are appended so the generated voice
    stays close to how the host actually talks.

    Args:
        slug: Analyst slug or the roundtable slug
        transcript_excerpts: Short verbatim quotes from the persona's shows

    Returns:
        System prompt text

    Raises:
        UnknownPersonaError: If the slug is neither an analyst nor the roundtable
    """
    if slug == ROUNDTABLE.slug:
        base_prompt = ROUNDTABLE.profile
    else:
        base_prompt = get_analyst(slug).profile

    if not transcript_excerpts:
        return base_prompt

    numbered = '\n'.join(f'{i}. "{excerpt}"' for i, excerpt in enumerate(transcript_excerpts, 1))
    return (
        f"{base_prompt}\n\n"
        f"## RECENT SHOW EXCERPTS (use these to inform your voice and stay current)\n"
        f"{numbered}\n\n"
        "Draw on these excerpts to inform your perspective. Reference specific points when relevant, "
        "but analyze the current article through your own analytical framework."
    )
