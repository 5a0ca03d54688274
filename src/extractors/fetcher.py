"""
Source dispatch: picks the extraction strategy for a configured source.
"""

from typing import List, Optional

from .base import CandidateArticle
from .html_page import scrape_html_page
from .rss import fetch_rss_feed


def fetch_source(source, max_items: Optional[int] = None) -> List[CandidateArticle]:
    """
    Fetch the current candidate articles of a source.

    Sources with a feed URL are read as RSS/Atom. Every other source is
    scraped from its page URL with its CSS selector (or the default one).

    Args:
        source: Source row (name, url, feed_url, scrape_selector)
        max_items: Maximum number of candidates (defaults to MAX_ITEMS_PER_SOURCE)

    Returns:
        List of CandidateArticle

    Raises:
        requests.RequestException: If the source cannot be downloaded
        FetchError: If the payload cannot be parsed
    """
    if max_items is None:
        from settings import MAX_ITEMS_PER_SOURCE
        max_items = MAX_ITEMS_PER_SOURCE

    if source.feed_url:
        return fetch_rss_feed(source.feed_url, max_items=max_items)

    return scrape_html_page(source.url, selector=source.scrape_selector, max_items=max_items)
