"""
RSS/Atom feed extraction.

Feeds are downloaded with requests (custom User-Agent, bounded timeout) and
parsed with feedparser. Dates that feedparser cannot read are retried with
ISO 8601, RFC 822 and the "Feb 4, 2026 12:56pm" format some vendors use;
an unreadable date leaves the article undated instead of failing the feed.
"""

import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup

from .base import CandidateArticle, FetchError, content_hash, http_get


UNTITLED = 'Untitled'

# "Feb 4, 2026 12:56pm"
VENDOR_DATE_RE = re.compile(r'^(\w+)\s+(\d+),\s+(\d+)\s+(\d+):(\d+)(am|pm)$', re.IGNORECASE)


def _first_text(value: Any) -> Optional[str]:
    """First non-empty text node in a possibly nested title structure."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        # Text content first ('_' or 'value'), then links ('a'), then anything else
        keys = [k for k in ('_', 'value', 'a') if k in value]
        keys += [k for k in value if k not in keys]
        for key in keys:
            text = _first_text(value[key])
            if text:
                return text
        return None
    if isinstance(value, (list, tuple)):
        for item in value:
            text = _first_text(item)
            if text:
                return text
    return None


def extract_title(raw_title: Any) -> str:
    """
    Title text of a feed item.

    Example:
        >>> extract_title({'a': [{'_': 'Epic expands Cosmos'}]})
        'Epic expands Cosmos'
        >>> extract_title(None)
        'Untitled'
    """
    return _first_text(raw_title) or UNTITLED


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_published_date(value: Any) -> Optional[datetime]:
    """
    Parse a feed date.

    Args:
        value: time.struct_time (as produced by feedparser) or a date string

    Returns:
        Naive UTC datetime, or None if the value cannot be parsed
    """
    if value is None or value == '':
        return None

    if isinstance(value, time.struct_time):
        return datetime(*value[:6])

    if isinstance(value, datetime):
        return _to_naive_utc(value)

    date_str = str(value).strip()

    # ISO 8601: "2026-02-04T12:56:00Z"
    try:
        return _to_naive_utc(datetime.fromisoformat(date_str.replace('Z', '+00:00')))
    except ValueError:
        pass

    # RFC 822: "Wed, 04 Feb 2026 12:56:00 GMT"
    try:
        parsed = parsedate_to_datetime(date_str)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is not None:
        return _to_naive_utc(parsed)

    match = VENDOR_DATE_RE.match(date_str)
    if match:
        month, day, year, hour, minute, meridiem = match.groups()
        normalized = f"{month[:3].title()} {day} {year} {int(hour)}:{minute}{meridiem.upper()}"
        try:
            return datetime.strptime(normalized, '%b %d %Y %I:%M%p')
        except ValueError:
            return None

    return None


def _entry_content(entry) -> str:
    """Plain-text body of a feed entry: full content, then summary, then description."""
    html = ''
    if entry.get('content'):
        html = entry['content'][0].get('value', '')
    if not html:
        html = entry.get('summary') or entry.get('description') or ''
    if not html:
        return ''
    text = BeautifulSoup(html, 'lxml').get_text(' ', strip=True)
    return re.sub(r'\s+', ' ', text).strip()


def parse_rss_feed(feed_text: str, feed_url: str, max_items: int = 10) -> List[CandidateArticle]:
    """
    Map the items of a feed document to candidate articles.

    Args:
        feed_text: RSS/Atom document
        feed_url: URL the document came from (base for relative links)
        max_items: Maximum number of items taken from the top of the feed

    Returns:
        List of CandidateArticle

    Raises:
        FetchError: If the document is not a readable feed
    """
    feed = feedparser.parse(feed_text)
    if feed.bozo and not feed.entries:
        raise FetchError(f"Could not parse feed {feed_url}: {feed.get('bozo_exception')}")

    articles = []
    for entry in feed.entries[:max_items]:
        link = (entry.get('link') or '').strip()
        if not link:
            continue
        url = urljoin(feed_url, link)

        content = _entry_content(entry)
        published = (parse_published_date(entry.get('published_parsed'))
                     or parse_published_date(entry.get('published'))
                     or parse_published_date(entry.get('updated')))

        articles.append(CandidateArticle(
            title=extract_title(entry.get('title')),
            url=url,
            content=content,
            # Items without a body are identified by their URL
            content_hash=content_hash(content or url),
            author=(entry.get('author') or '').strip() or None,
            published_date=published,
        ))

    return articles


def fetch_rss_feed(feed_url: str, max_items: int = 10, timeout: Optional[int] = None,
                   user_agent: Optional[str] = None) -> List[CandidateArticle]:
    """
    Download and parse a feed.

    Raises:
        requests.RequestException: If the download fails
        FetchError: If the document is not a readable feed
    """
    feed_text = http_get(feed_url, timeout=timeout, user_agent=user_agent)
    return parse_rss_feed(feed_text, feed_url, max_items=max_items)
