"""Exceptions raised by the Naver News crawler.

Every crawler error derives from ``NaverCrawlerError`` so orchestration code
can catch one type per article and keep going.
"""
from __future__ import annotations

from typing import Optional


class NaverCrawlerError(RuntimeError):
    """Base class for crawler failures."""


class FetchError(NaverCrawlerError):
    """A page could not be fetched.

    ``status`` is the HTTP status when the server answered, ``retryable``
    tells the retry loop whether another attempt makes sense.
    """

    def __init__(self, message: str, status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.retryable = retryable

    @classmethod
    def server_error(cls, status: int) -> "FetchError":
        return cls(f"Server error: {status}", status=status, retryable=status in RETRYABLE_STATUSES)

    @classmethod
    def timeout(cls, url: str) -> "FetchError":
        return cls(f"Request timeout: {url}", retryable=True)

    @classmethod
    def invalid_url(cls, url: str, reason: str = "") -> "FetchError":
        detail = f" ({reason})" if reason else ""
        return cls(f"Invalid URL: {url}{detail}")

    @classmethod
    def max_retries_exceeded(cls, url: str, last_error: Optional[BaseException] = None) -> "FetchError":
        suffix = f": {last_error}" if last_error else ""
        return cls(f"Maximum retry attempts exceeded for {url}{suffix}")


# 429 and transient 5xx answers are worth another attempt.
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class ParseError(NaverCrawlerError):
    """An article page could not be turned into a ``ParsedArticle``."""

    TITLE_NOT_FOUND = "title_not_found"
    CONTENT_NOT_FOUND = "content_not_found"
    ID_EXTRACTION_FAILED = "id_extraction_failed"
    ARTICLE_NOT_FOUND = "article_not_found"
    UNKNOWN_FORMAT = "unknown_format"

    _MESSAGES = {
        TITLE_NOT_FOUND: "Title not found in article",
        CONTENT_NOT_FOUND: "Content not found in article",
        ID_EXTRACTION_FAILED: "Failed to extract article ID from URL",
        ARTICLE_NOT_FOUND: "Article not found",
        UNKNOWN_FORMAT: "Unknown or unsupported format",
    }

    def __init__(self, kind: str, detail: str = ""):
        message = self._MESSAGES.get(kind, kind)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.kind = kind


class CrawlerError(NaverCrawlerError):
    """List collection or orchestration failed."""
