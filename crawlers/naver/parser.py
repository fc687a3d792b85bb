"""HTML article parser for Naver News.

Naver serves at least four page layouts (general news, entertainment, sports,
card/photo news). ``ArticleParser.parse_with_fallback`` detects the layout,
runs the matching parser, and falls back through every other parser before
giving up.
"""
from __future__ import annotations

import copy
import re
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from bs4 import BeautifulSoup, Tag

from crawlers.naver import selectors as sel
from crawlers.naver.errors import ParseError
from crawlers.naver.models import KST, ParsedArticle, category_from_url, now_utc
from crawlers.naver.selectors import ArticleFormat, LayoutSelectors
from crawlers.naver.urls import extract_ids
from preprocessing.cleaners import has_content, sanitize_text

DATE_FORMATS = [
    "%Y.%m.%d. %H:%M",       # 2024.12.15. 14:30
    "%Y.%m.%d %H:%M",        # 2024.12.15 14:30
    "%Y-%m-%d %H:%M:%S",     # 2024-12-15 14:30:00
    "%Y-%m-%d %H:%M",        # 2024-12-15 14:30
    "%Y년 %m월 %d일 %H:%M",   # 2024년 12월 15일 14:30
    "%Y.%m.%d.",             # 2024.12.15.
    "%Y.%m.%d",              # 2024.12.15
]
DATE_ONLY_FORMATS = ["%Y.%m.%d.", "%Y.%m.%d", "%Y-%m-%d"]

# 2024.12.25. 오후 3:45 / 2024-12-25 오전 11:30
_KOREAN_AMPM = re.compile(
    r"(\d{4})[.-](\d{1,2})[.-](\d{1,2})\.?\s*(오전|오후)\s*(\d{1,2}):(\d{2})"
)
_DELETED_HTML_LIMIT = 5000


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def detect_format(html: str) -> ArticleFormat:
    return _detect(_soup(html))


def _detect(soup: BeautifulSoup) -> ArticleFormat:
    for fmt, marker in sel.FORMAT_MARKERS:
        if soup.select_one(marker) is not None:
            return fmt
    return ArticleFormat.UNKNOWN


# ---------- dates ----------

def _as_kst(naive: datetime) -> datetime:
    return naive.replace(tzinfo=KST)


def _parse_korean_ampm(text: str) -> Optional[datetime]:
    match = _KOREAN_AMPM.search(text)
    if not match:
        return None
    year, month, day = (int(match.group(i)) for i in (1, 2, 3))
    marker, hour, minute = match.group(4), int(match.group(5)), int(match.group(6))
    if marker == "오전":
        hour = 0 if hour == 12 else hour
    else:
        hour = hour if hour == 12 else hour + 12
    try:
        return _as_kst(datetime(year, month, day, hour, minute))
    except ValueError:
        return None


def parse_date(value: str) -> Optional[datetime]:
    """Parse a Naver date string into an aware datetime (KST when naive)."""
    text = (value or "").strip()
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None and ("T" in text or parsed.tzinfo is not None):
        return parsed if parsed.tzinfo else _as_kst(parsed)

    korean = _parse_korean_ampm(text)
    if korean:
        return korean

    for fmt in DATE_FORMATS:
        try:
            return _as_kst(datetime.strptime(text, fmt))
        except ValueError:
            continue

    # date-only prefix, e.g. "2024.12.15. 입력"
    head = text.split()[0]
    for fmt in DATE_ONLY_FORMATS:
        try:
            return _as_kst(datetime.strptime(head, fmt))
        except ValueError:
            continue
    return None


# ---------- extraction helpers ----------

def _element_text(element: Tag) -> str:
    """Text of a copy of ``element`` with noise removed and ``<br>`` as newlines."""
    element = copy.copy(element)
    for noise in sel.NOISE:
        for node in element.select(noise):
            node.extract()
    for br in element.find_all("br"):
        br.replace_with("\n")
    return element.get_text()


def first_text(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text()
        if has_content(text):
            return text.strip()
    return None


def content_text(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = _element_text(element)
        if has_content(text):
            return text
    return None


def publisher_name(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    """Publisher logos carry the name in ``alt``; plain text is the fallback."""
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        alt = element.get("alt")
        if isinstance(alt, str) and has_content(alt):
            return alt.strip()
        text = element.get_text()
        if has_content(text):
            return text.strip()
    return None


def date_value(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[datetime]:
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        for attr in ("data-date-time", "data-modify-date-time"):
            raw = element.get(attr)
            if isinstance(raw, str) and raw.strip():
                parsed = parse_date(raw)
                if parsed:
                    return parsed
        text = element.get_text()
        if has_content(text):
            return parse_date(text)
    return None


def card_captions(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    captions = [
        element.get_text().strip()
        for selector in selectors
        for element in soup.select(selector)
        if has_content(element.get_text())
    ]
    return "\n\n".join(captions) if captions else None


def is_deleted_article(html: str, soup: Optional[BeautifulSoup] = None) -> bool:
    """Only ``<title>`` and error blocks are checked, since article bodies may
    legitimately talk about deleted articles."""
    soup = soup if soup is not None else _soup(html)

    title = soup.find("title")
    if title is not None:
        text = title.get_text()
        if any(indicator in text for indicator in sel.DELETED_INDICATORS):
            return True

    for selector in sel.ERROR_BLOCKS:
        for element in soup.select(selector):
            text = element.get_text()
            if any(indicator in text for indicator in sel.DELETED_INDICATORS):
                return True

    has_container = any(soup.select_one(s) is not None for s in sel.CONTENT_CONTAINERS)
    return not has_container and len(html or "") < _DELETED_HTML_LIMIT


# ---------- parser ----------

class ArticleParser:
    """Multi-layout parser. Stateless; one instance can be shared by workers."""

    def __init__(self):
        self._parsers = {
            ArticleFormat.GENERAL: self.parse_general,
            ArticleFormat.ENTERTAINMENT: self.parse_entertainment,
            ArticleFormat.SPORTS: self.parse_sports,
            ArticleFormat.CARD: self.parse_card,
        }

    def parse_with_fallback(self, html: str, url: str) -> ParsedArticle:
        soup = _soup(html)
        if is_deleted_article(html, soup):
            raise ParseError(ParseError.ARTICLE_NOT_FOUND, url)

        oid, aid = extract_ids(url)
        fmt = _detect(soup)
        primary = self._parsers.get(fmt, self.parse_card)

        candidates: List[Callable[[BeautifulSoup, str], ParsedArticle]] = [primary]
        candidates += [p for p in self._parsers.values() if p != primary]

        for parse in candidates:
            try:
                article = parse(soup, url)
            except ParseError:
                continue
            article.oid = oid
            article.aid = aid
            article.compute_hash()
            return article

        raise ParseError(ParseError.UNKNOWN_FORMAT, url)

    def _parse_layout(
        self,
        soup: BeautifulSoup,
        url: str,
        layout: LayoutSelectors,
        category: str,
        publisher_from_logo: bool = False,
    ) -> ParsedArticle:
        title = first_text(soup, layout.title)
        if not title:
            raise ParseError(ParseError.TITLE_NOT_FOUND)
        content = content_text(soup, layout.content)
        if not content or not has_content(sanitize_text(content)):
            raise ParseError(ParseError.CONTENT_NOT_FOUND)

        if publisher_from_logo:
            publisher = publisher_name(soup, layout.publisher)
        else:
            publisher = first_text(soup, layout.publisher)

        return ParsedArticle(
            title=sanitize_text(title),
            content=sanitize_text(content),
            url=url,
            category=category,
            publisher=publisher,
            author=first_text(soup, layout.author),
            published_at=date_value(soup, layout.date),
            crawled_at=now_utc(),
        )

    def parse_general(self, soup: BeautifulSoup, url: str) -> ParsedArticle:
        return self._parse_layout(
            soup, url, sel.GENERAL, category_from_url(url), publisher_from_logo=True
        )

    def parse_entertainment(self, soup: BeautifulSoup, url: str) -> ParsedArticle:
        return self._parse_layout(soup, url, sel.ENTERTAINMENT, "entertainment")

    def parse_sports(self, soup: BeautifulSoup, url: str) -> ParsedArticle:
        return self._parse_layout(soup, url, sel.SPORTS, "sports")

    def parse_card(self, soup: BeautifulSoup, url: str) -> ParsedArticle:
        title = first_text(soup, sel.CARD.title)
        if not title:
            raise ParseError(ParseError.TITLE_NOT_FOUND)
        content = content_text(soup, sel.CARD.content) or card_captions(soup, sel.CARD.captions)
        if not content:
            raise ParseError(ParseError.CONTENT_NOT_FOUND)
        return ParsedArticle(
            title=sanitize_text(title),
            content=sanitize_text(content),
            url=url,
            category="card",
            crawled_at=now_utc(),
        )


def parse_article(html: str, url: str) -> ParsedArticle:
    return ArticleParser().parse_with_fallback(html, url)
