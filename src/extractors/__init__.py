"""
Source extractors for healthcare IT news.

Every extractor returns a list of CandidateArticle (title, url, content,
content_hash, author, published_date). fetch_source() picks the extractor
that matches a configured source.
"""

from .base import CandidateArticle, FetchError, content_hash
from .fetcher import fetch_source

__all__ = ['CandidateArticle', 'FetchError', 'content_hash', 'fetch_source']
