"""
Viewpoint generation: analyst views, audience briefs and the roundtable.

The analyst viewpoint is the intermediate artifact of a two-stage process.
Stage one produces it in the routed analyst's voice; stage two fans it out
into one brief per output persona template.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from domain.personas import ROUNDTABLE, OutputPersonaTemplate, build_persona_prompt
from llm.openai_client import structured_output


VIEWPOINT_TEMPERATURE = 0.7
BRIEF_TEMPERATURE = 0.5
ROUNDTABLE_TEMPERATURE = 0.7

# Voice grounding: excerpts from this many transcripts, this many per transcript
EXCERPT_TRANSCRIPTS = 3
EXCERPTS_PER_TRANSCRIPT = 2

BRIEF_CONFIDENCE = 0.85


@dataclass
class GeneratedViewpoint:
    text: str
    key_insights: List[str] = field(default_factory=list)
    confidence_score: float = 0.8


@dataclass
class OutputBrief:
    brief: str
    headline: str = ''
    key_takeaways: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    relevance_rating: Optional[int] = None

    @property
    def key_insights(self) -> List[str]:
        """Takeaways followed by the action items, marked 'ACTION: '."""
        return list(self.key_takeaways) + [f"ACTION: {item}" for item in self.action_items]


def collect_transcript_excerpts(transcripts: Iterable) -> List[str]:
    """
    Voice-grounding excerpts from a persona's processed transcripts.

    Takes the first EXCERPTS_PER_TRANSCRIPT quotes of each of the first
    EXCERPT_TRANSCRIPTS transcripts and joins them into one excerpt per
    transcript.
    """
    excerpts = []
    for transcript in list(transcripts)[:EXCERPT_TRANSCRIPTS]:
        quotes = []
        for excerpt in (transcript.processed_excerpts or [])[:EXCERPTS_PER_TRANSCRIPT]:
            if isinstance(excerpt, dict):
                quote = excerpt.get('quote') or excerpt.get('text') or ''
            else:
                quote = str(excerpt)
            if quote.strip():
                quotes.append(quote.strip())
        if quotes:
            excerpts.append(' '.join(quotes))
    return excerpts


def generate_analyst_viewpoint(generator, analyst_slug: str, article: Dict,
                               transcript_excerpts: Optional[List[str]] = None) -> GeneratedViewpoint:
    """
    Generate an analyst's first-person view on an article.

    Args:
        generator: Text generator
        analyst_slug: Analyst whose voice is used
        article: Article payload (title, short_summary, raw_content, topic_tags)
        transcript_excerpts: Optional quotes grounding the analyst's voice

    Raises:
        UnknownPersonaError: If the slug is not an analyst
        GenerationError: If the call fails or the response holds no valid JSON
    """
    data = {
        'persona_prompt': build_persona_prompt(analyst_slug, transcript_excerpts),
        'title': article['title'],
        'summary': article.get('short_summary') or '',
        'content': article.get('raw_content') or '',
        'topic_tags': article.get('topic_tags') or [],
    }
    result = structured_output(
        generator,
        'analyst_viewpoint',
        data,
        temperature=VIEWPOINT_TEMPERATURE,
        context_data={'article_id': article['id'], 'persona': analyst_slug}
    )
    return GeneratedViewpoint(
        text=result.viewpoint,
        key_insights=result.key_insights,
        confidence_score=result.confidence_score,
    )


def generate_output_brief(generator, template: OutputPersonaTemplate, analyst_name: str,
                          viewpoint_text: str, article: Dict) -> OutputBrief:
    """
    Repackage an analyst viewpoint for one output persona.

    Raises:
        GenerationError: If the call fails or the response holds no valid JSON
    """
    data = {
        'brief_prompt': template.prompt,
        'audience_title': template.title,
        'analyst_name': analyst_name,
        'viewpoint_text': viewpoint_text,
        'title': article['title'],
        'summary': article.get('short_summary') or '',
        'topic_tags': article.get('topic_tags') or [],
    }
    result = structured_output(
        generator,
        'output_brief',
        data,
        temperature=BRIEF_TEMPERATURE,
        context_data={'article_id': article['id'], 'persona': template.persona_slug}
    )
    return OutputBrief(
        brief=result.brief,
        headline=result.headline,
        key_takeaways=result.key_takeaways,
        action_items=result.action_items,
        relevance_rating=result.relevance_rating,
    )


def generate_roundtable(generator, article: Dict, viewpoints: Sequence[Tuple[str, str]]) -> GeneratedViewpoint:
    """
    Combine the analysts' viewpoints into one roundtable discussion.

    Args:
        generator: Text generator
        article: Article payload (id, title, short_summary)
        viewpoints: (analyst name, viewpoint text) pairs

    Raises:
        GenerationError: If the call fails or the response holds no valid JSON
    """
    data = {
        'persona_prompt': build_persona_prompt(ROUNDTABLE.slug),
        'title': article['title'],
        'summary': article.get('short_summary') or '',
        'viewpoints': [{'name': name, 'text': text} for name, text in viewpoints],
    }
    result = structured_output(
        generator,
        'roundtable',
        data,
        temperature=ROUNDTABLE_TEMPERATURE,
        context_data={'article_id': article['id'], 'persona': ROUNDTABLE.slug}
    )
    return GeneratedViewpoint(
        text=result.viewpoint,
        key_insights=result.key_insights,
        confidence_score=result.confidence_score,
    )
