"""
Topic-tag routing of articles to analyst personas.

Each tag that appears in TOPIC_TO_ANALYST casts one vote for its analyst.
The analyst with strictly the most votes wins; ties and articles with no
matching tag go to DEFAULT_ANALYST.
"""

from collections import Counter
from typing import Iterable


DEFAULT_ANALYST = 'bill-russell'

# Normalized tag -> analyst slug. Tags not listed here vote for nobody.
TOPIC_TO_ANALYST = {
    # Security and compliance
    'cybersecurity': 'drex-deford',
    'security': 'drex-deford',
    'ransomware': 'drex-deford',
    'breach': 'drex-deford',
    'zero-trust': 'drex-deford',
    'hipaa': 'drex-deford',
    'compliance': 'drex-deford',
    'privacy': 'drex-deford',
    'threat intelligence': 'drex-deford',
    'incident response': 'drex-deford',

    # Leadership and workforce
    'leadership': 'sarah-richardson',
    'workforce': 'sarah-richardson',
    'change management': 'sarah-richardson',
    'culture': 'sarah-richardson',
    'staffing': 'sarah-richardson',
    'burnout': 'sarah-richardson',
    'talent pipeline': 'sarah-richardson',
    'retention': 'sarah-richardson',
    'diversity': 'sarah-richardson',
    'training': 'sarah-richardson',
    'career development': 'sarah-richardson',
}


def route_to_analyst(topic_tags: Iterable[str]) -> str:
    """
    Pick the analyst best suited to an article's topic tags.

    Args:
        topic_tags: Tags from the article summary (any case/whitespace)

    Returns:
        Analyst slug

    Example:
        >>> route_to_analyst(['Ransomware', 'cybersecurity'])
        'drex-deford'
        >>> route_to_analyst([])
        'bill-russell'
    """
    votes = Counter()
    for tag in topic_tags or []:
        analyst = TOPIC_TO_ANALYST.get(str(tag).lower().strip())
        if analyst:
            votes[analyst] += 1

    if not votes:
        return DEFAULT_ANALYST

    ranked = votes.most_common()
    best_analyst, best_score = ranked[0]
    if len(ranked) > 1 and ranked[1][1] == best_score:
        return DEFAULT_ANALYST
    return best_analyst
