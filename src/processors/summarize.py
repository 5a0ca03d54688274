"""
Article summarization.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from llm.openai_client import structured_output


SUMMARY_TEMPERATURE = 0.3

# Tags the summarizer chooses from
TOPIC_TAGS = [
    'cybersecurity', 'AI', 'EHR', 'interoperability', 'telehealth', 'analytics',
    'cloud', 'regulation', 'M&A', 'partnership', 'funding', 'leadership',
]


@dataclass
class ArticleSummary:
    short_summary: str
    key_takeaways: List[str] = field(default_factory=list)
    topic_tags: List[str] = field(default_factory=list)
    relevance_score: int = 5


def summarize_article(generator, title: str, content: str, article_id: Optional[int] = None) -> ArticleSummary:
    """
    Summarize an article and rate its relevance for healthcare IT vendors.

    Args:
        generator: Text generator
        title: Article title
        content: Article body
        article_id: Recorded in the call log

    Returns:
        ArticleSummary with relevance_score in 1-10

    Raises:
        GenerationError: If the call fails or the response holds no valid JSON
    """
    result = structured_output(
        generator,
        'article_summary',
        {'title': title, 'content': content or '', 'topic_tags': TOPIC_TAGS},
        temperature=SUMMARY_TEMPERATURE,
        context_data={'article_id': article_id} if article_id else None
    )

    return ArticleSummary(
        short_summary=result.summary,
        key_takeaways=result.takeaways,
        topic_tags=result.tags,
        relevance_score=result.relevance_score,
    )
