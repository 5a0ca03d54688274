"""
Article extraction from HTML listing pages.

Each element matched by the source's CSS selector is one candidate article.
"""

import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .base import CandidateArticle, content_hash, http_get


DEFAULT_SELECTOR = 'article, .article, .post, .news-item'
TITLE_SELECTOR = 'h1, h2, h3, .title, .headline'
MAX_CONTENT_CHARS = 2000
MIN_TITLE_CHARS = 6


def _clean_text(text: str) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()


def parse_html_listing(html: str, page_url: str, selector: Optional[str] = None,
                       max_items: int = 10) -> List[CandidateArticle]:
    """
    Extract candidate articles from a listing page.

    Args:
        html: Page HTML
        page_url: URL of the page (base for relative links)
        selector: CSS selector of article elements (defaults to DEFAULT_SELECTOR)
        max_items: Maximum number of articles returned

    Returns:
        List of CandidateArticle. Elements whose title is shorter than
        MIN_TITLE_CHARS are skipped.
    """
    soup = BeautifulSoup(html, 'lxml')
    articles = []

    for node in soup.select(selector or DEFAULT_SELECTOR):
        if len(articles) >= max_items:
            break

        text = _clean_text(node.get_text(' ', strip=True))

        title_el = node.select_one(TITLE_SELECTOR)
        heading = _clean_text(title_el.get_text(' ', strip=True)) if title_el else ''
        title = heading or text[:100].strip()
        if len(title) < MIN_TITLE_CHARS:
            continue

        link_el = node.select_one('a[href]')
        href = link_el.get('href') if link_el else node.get('href')
        url = urljoin(page_url, href.strip()) if href and href.strip() else page_url

        articles.append(CandidateArticle(
            title=title,
            url=url,
            content=text[:MAX_CONTENT_CHARS],
            content_hash=content_hash(text),
        ))

    return articles


def scrape_html_page(page_url: str, selector: Optional[str] = None, max_items: int = 10,
                     timeout: Optional[int] = None, user_agent: Optional[str] = None) -> List[CandidateArticle]:
    """
    Download a listing page and extract its articles.

    Raises:
        requests.RequestException: If the download fails
    """
    html = http_get(page_url, timeout=timeout, user_agent=user_agent)
    return parse_html_listing(html, page_url, selector=selector, max_items=max_items)
