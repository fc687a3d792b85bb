"""Core records for the Naver News crawler.

``ParsedArticle`` is one crawled article (the unit written to the markdown
corpus), ``NewsCategory`` maps Naver section ids, and ``CrawlState`` tracks
run-level progress so an interrupted crawl can be resumed.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from urllib.parse import parse_qs, urlparse

# Naver publishes times in Korea Standard Time.
KST = timezone(timedelta(hours=9))


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _from_iso(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# ---------- article ----------

@dataclass
class ParsedArticle:
    oid: str = ""
    aid: str = ""
    title: str = ""
    content: str = ""
    url: str = ""
    category: str = ""
    publisher: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    crawled_at: datetime = field(default_factory=now_utc)
    content_hash: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.oid}_{self.aid}"

    def compute_hash(self) -> str:
        """SHA-256 of the body; used as the de-duplication fingerprint."""
        self.content_hash = sha256(self.content.encode("utf-8")).hexdigest()
        return self.content_hash

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "oid": self.oid,
            "aid": self.aid,
            "title": self.title,
            "content": self.content,
            "url": self.url,
            "category": self.category,
            "publisher": self.publisher,
            "author": self.author,
            "published_at": _iso(self.published_at),
            "crawled_at": _iso(self.crawled_at),
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedArticle":
        return cls(
            oid=str(data.get("oid") or ""),
            aid=str(data.get("aid") or ""),
            title=data.get("title") or "",
            content=data.get("content") or "",
            url=data.get("url") or "",
            category=data.get("category") or "",
            publisher=data.get("publisher") or None,
            author=data.get("author") or None,
            published_at=_from_iso(data.get("published_at")),
            crawled_at=_from_iso(data.get("crawled_at")) or now_utc(),
            content_hash=data.get("content_hash") or None,
        )


# ---------- categories ----------

class NewsCategory(Enum):
    POLITICS = 100
    ECONOMY = 101
    SOCIETY = 102
    CULTURE = 103
    WORLD = 104
    IT = 105

    @property
    def section_id(self) -> int:
        return self.value

    @property
    def slug(self) -> str:
        return self.name.lower()

    @property
    def korean_name(self) -> str:
        return _KOREAN_NAMES[self]

    @classmethod
    def from_section_id(cls, section_id: int) -> Optional["NewsCategory"]:
        try:
            return cls(int(section_id))
        except (TypeError, ValueError):
            return None

    @classmethod
    def parse(cls, name: str) -> Optional["NewsCategory"]:
        """Accept English or Korean names, case-insensitively."""
        return _ALIASES.get((name or "").strip().lower())

    @classmethod
    def all(cls) -> List["NewsCategory"]:
        return list(cls)

    def __str__(self) -> str:
        return self.slug


_KOREAN_NAMES = {
    NewsCategory.POLITICS: "정치",
    NewsCategory.ECONOMY: "경제",
    NewsCategory.SOCIETY: "사회",
    NewsCategory.CULTURE: "생활/문화",
    NewsCategory.WORLD: "세계",
    NewsCategory.IT: "IT/과학",
}

_ALIASES = {
    "politics": NewsCategory.POLITICS,
    "정치": NewsCategory.POLITICS,
    "economy": NewsCategory.ECONOMY,
    "경제": NewsCategory.ECONOMY,
    "society": NewsCategory.SOCIETY,
    "사회": NewsCategory.SOCIETY,
    "culture": NewsCategory.CULTURE,
    "생활/문화": NewsCategory.CULTURE,
    "생활": NewsCategory.CULTURE,
    "문화": NewsCategory.CULTURE,
    "world": NewsCategory.WORLD,
    "세계": NewsCategory.WORLD,
    "it": NewsCategory.IT,
    "it/과학": NewsCategory.IT,
    "과학": NewsCategory.IT,
}

_PATH_HINTS = [
    ("/politics/", "politics"),
    ("/economy/", "economy"),
    ("/society/", "society"),
    ("/culture/", "culture"),
    ("/life/", "culture"),
    ("/world/", "world"),
    ("/it/", "it"),
    ("/science/", "it"),
]


def category_from_url(url: str) -> str:
    """Infer the category slug from a ``sid=`` query value or a path hint."""
    query = parse_qs(urlparse(url).query)
    for key in ("sid", "sid1"):
        for value in query.get(key, []):
            category = NewsCategory.from_section_id(value) if value.isdigit() else None
            if category:
                return category.slug
    for hint, slug in _PATH_HINTS:
        if hint in url:
            return slug
    return "general"


# ---------- progress ----------

@dataclass
class CrawlStats:
    total_crawled: int = 0
    total_errors: int = 0
    unique_articles: int = 0
    duration_secs: int = 0

    def error_rate(self) -> float:
        """Errors as a percentage of crawled articles."""
        if self.total_crawled == 0:
            return 0.0
        return self.total_errors / self.total_crawled * 100.0

    def crawl_rate(self) -> float:
        """Articles per minute."""
        if self.duration_secs == 0:
            return 0.0
        return self.total_crawled / self.duration_secs * 60.0


@dataclass
class CrawlState:
    completed_articles: Set[str] = field(default_factory=set)
    last_category: Optional[str] = None
    last_page: int = 0
    last_url: Optional[str] = None
    total_crawled: int = 0
    total_errors: int = 0
    started_at: Optional[datetime] = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def is_completed(self, article_id: str) -> bool:
        return article_id in self.completed_articles

    def mark_completed(self, article_id: str) -> None:
        self.completed_articles.add(article_id)
        self.total_crawled += 1
        self.updated_at = now_utc()

    def record_error(self) -> None:
        self.total_errors += 1
        self.updated_at = now_utc()

    def stats(self) -> CrawlStats:
        duration = 0
        if self.started_at:
            duration = max(int((now_utc() - self.started_at).total_seconds()), 0)
        return CrawlStats(
            total_crawled=self.total_crawled,
            total_errors=self.total_errors,
            unique_articles=len(self.completed_articles),
            duration_secs=duration,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_articles": sorted(self.completed_articles),
            "last_category": self.last_category,
            "last_page": self.last_page,
            "last_url": self.last_url,
            "total_crawled": self.total_crawled,
            "total_errors": self.total_errors,
            "started_at": _iso(self.started_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlState":
        return cls(
            completed_articles=set(data.get("completed_articles") or []),
            last_category=data.get("last_category"),
            last_page=int(data.get("last_page") or 0),
            last_url=data.get("last_url"),
            total_crawled=int(data.get("total_crawled") or 0),
            total_errors=int(data.get("total_errors") or 0),
            started_at=_from_iso(data.get("started_at")),
            updated_at=_from_iso(data.get("updated_at")) or now_utc(),
        )

    def save(self, path: str | os.PathLike) -> None:
        """Write the state atomically (temp file + replace)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)

    @classmethod
    def load(cls, path: str | os.PathLike) -> "CrawlState":
        """Load state; a missing or corrupted file yields a fresh state."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                return cls()
            return cls.from_dict(data)
        except (OSError, ValueError, TypeError):
            return cls()
