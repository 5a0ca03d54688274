"""
Candidate articles and the HTTP boundary shared by the source extractors.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests


class FetchError(Exception):
    """A source responded but its payload could not be parsed."""


@dataclass
class CandidateArticle:
    """An article found on a source, not yet persisted."""
    title: str
    url: str
    content: str
    content_hash: str
    author: Optional[str] = None
    published_date: Optional[datetime] = None


def content_hash(text: str) -> str:
    """MD5 hex digest used as the content identity of an article."""
    return hashlib.md5(text.encode('utf-8')).hexdigest()


def http_get(url: str, timeout: Optional[int] = None, user_agent: Optional[str] = None) -> str:
    """
    GET a URL and return the body as text.

    Args:
        url: URL to fetch
        timeout: Timeout in seconds (defaults to HTTP_TIMEOUT from settings)
        user_agent: User-Agent header (defaults to HTTP_USER_AGENT)

    Returns:
        Response body

    Raises:
        requests.RequestException: On network errors, timeouts and non-2xx responses
    """
    from settings import HTTP_TIMEOUT, HTTP_USER_AGENT

    headers = {
        'User-Agent': user_agent or HTTP_USER_AGENT
    }

    response = requests.get(url, headers=headers, timeout=timeout or HTTP_TIMEOUT)
    response.raise_for_status()
    return response.text
