"""Naver News article URL extraction, normalization and validation.

Handles the URL shapes Naver has used over time:

    https://n.news.naver.com/mnews/article/{oid}/{aid}
    https://n.news.naver.com/article/{oid}/{aid}
    https://news.naver.com/main/read.naver?oid={oid}&aid={aid}
    https://m.news.naver.com/article/{oid}/{aid}
    /mnews/article/{oid}/{aid}            (relative, from list pages)

Every accepted URL is normalized to the desktop ``/mnews/article`` form.
"""
from __future__ import annotations

import ipaddress
import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from crawlers.naver.errors import ParseError

ARTICLE_PATTERN = re.compile(r"/(?:mnews/)?article/(\d{3})/(\d{10,})")
OLD_FORMAT_PATTERN = re.compile(r"oid=(\d{3})&aid=(\d{10,})")
HREF_PATTERN = re.compile(r"""href=["']([^"']+)["']""", re.IGNORECASE)

CANONICAL_TEMPLATE = "https://n.news.naver.com/mnews/article/{oid}/{aid}"

ALLOWED_DOMAINS = frozenset(
    {
        "n.news.naver.com",
        "news.naver.com",
        "m.news.naver.com",
        "entertain.naver.com",
        "sports.naver.com",
        "sports.news.naver.com",
    }
)

_BLOCKED_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def extract_ids(url: str) -> Tuple[str, str]:
    """Return ``(oid, aid)`` for an article URL or raise ``ParseError``."""
    for pattern in (ARTICLE_PATTERN, OLD_FORMAT_PATTERN):
        match = pattern.search(url or "")
        if match:
            return match.group(1), match.group(2)
    raise ParseError(ParseError.ID_EXTRACTION_FAILED, url)


def normalize_url(url: str) -> Optional[str]:
    try:
        oid, aid = extract_ids(url)
    except ParseError:
        return None
    return CANONICAL_TEMPLATE.format(oid=oid, aid=aid)


def _host(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def is_allowed_domain(url: str) -> bool:
    return _host(url) in ALLOWED_DOMAINS


def _is_private_ip(host: str) -> bool:
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return False
    if addr.version != 4:
        return False
    return any(
        addr in ipaddress.ip_network(net)
        for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "169.254.0.0/16")
    )


def _unsafe_reason(url: str) -> Optional[str]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return "unparseable URL"
    if parsed.scheme not in ("http", "https"):
        return f"scheme '{parsed.scheme or 'none'}' is not allowed"
    host = parsed.hostname
    if not host:
        return "missing host"
    if host in _BLOCKED_HOSTS:
        return "localhost is not allowed"
    if _is_private_ip(host):
        return "private IP ranges are not allowed"
    return None


def is_safe_url(url: str) -> bool:
    """SSRF guard: only public http(s) hosts pass."""
    return _unsafe_reason(url) is None


def validate_url(url: str) -> None:
    """Raise ``ValueError`` with the reason when ``url`` must not be fetched."""
    reason = _unsafe_reason(url)
    if reason:
        raise ValueError(f"Unsafe URL {url}: {reason}")
    if not is_allowed_domain(url):
        raise ValueError(f"Domain not allowed: {_host(url)}")


def is_valid_article_url(url: str) -> bool:
    try:
        extract_ids(url)
    except ParseError:
        return False
    return is_allowed_domain(url) and is_safe_url(url)


def to_absolute(url: str, base: str) -> str:
    if url.startswith(("http://", "https://")):
        return url
    try:
        return urljoin(base, url)
    except ValueError:
        return url


def extract_urls(html: str) -> List[str]:
    """Collect normalized, validated, de-duplicated article URLs from a page."""
    urls = set()
    for href in HREF_PATTERN.findall(html or ""):
        normalized = normalize_url(href)
        if normalized and is_valid_article_url(normalized):
            urls.add(normalized)
    return sorted(urls)
