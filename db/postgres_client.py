"""PostgreSQL access for the Naver News corpus.

The connection string comes from ``DATABASE_URL`` (loaded from ``.env`` via
python-dotenv). Two concerns live here:

- ``upsert_article()`` stores processed documents in ``news_articles``.
- ``DedupChecker`` keeps the shared ``crawl_dedup`` table so several crawler
  machines can skip URLs and content another one already handled.
"""
from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

import psycopg2
import psycopg2.extras
from dotenv import load_dotenv

load_dotenv()


def get_conn():
    """Create a new PostgreSQL connection from ``DATABASE_URL``.

    Callers are responsible for closing the connection.
    """
    conn_str = os.getenv("DATABASE_URL")
    if not conn_str:
        raise ValueError("DATABASE_URL environment variable is not set")
    return psycopg2.connect(conn_str)


NEWS_ARTICLES_DDL = """
CREATE TABLE IF NOT EXISTS news_articles (
  id           BIGSERIAL PRIMARY KEY,
  article_id   TEXT        NOT NULL,
  site         TEXT        NOT NULL,
  category     TEXT        NOT NULL,
  url          TEXT        NOT NULL UNIQUE,
  title        TEXT,
  lang         TEXT        NOT NULL,
  content      TEXT        NOT NULL,
  scraped_at   TIMESTAMPTZ NOT NULL,
  published_at TIMESTAMPTZ,
  meta         JSONB
);
"""


def upsert_article(doc: Dict[str, Any], conn_factory: Callable[[], Any] = None) -> None:
    """Insert or update one processed article, keyed on ``url``.

    ``doc`` is the dict produced by ``ingestion.naver_ingest.iter_docs``:
    id, site, category, url, title, lang, text, scraped_at, published_at, meta.
    """
    conn = (conn_factory or get_conn)()
    try:
        with conn:
            with conn.cursor() as cur:
                cur.execute(NEWS_ARTICLES_DDL)
                cur.execute(
                    """
                    INSERT INTO news_articles
                      (article_id, site, category, url, title, lang, content,
                       scraped_at, published_at, meta)
                    VALUES
                      (%(article_id)s, %(site)s, %(category)s, %(url)s, %(title)s,
                       %(lang)s, %(content)s, %(scraped_at)s, %(published_at)s, %(meta)s)
                    ON CONFLICT (url) DO UPDATE
                      SET title        = EXCLUDED.title,
                          content      = EXCLUDED.content,
                          scraped_at   = EXCLUDED.scraped_at,
                          published_at = EXCLUDED.published_at,
                          meta         = EXCLUDED.meta;
                    """,
                    {
                        "article_id": doc["id"],
                        "site": doc.get("site", "naver"),
                        "category": doc["category"],
                        "url": doc["url"],
                        "title": doc.get("title"),
                        "lang": doc.get("lang", "ko"),
                        "content": doc["text"],
                        "scraped_at": doc["scraped_at"],
                        "published_at": doc.get("published_at"),
                        "meta": psycopg2.extras.Json(doc.get("meta", {})),
                    },
                )
    finally:
        conn.close()


# ---------- distributed de-duplication ----------

CRAWL_DEDUP_DDL = """
CREATE TABLE IF NOT EXISTS crawl_dedup (
    id SERIAL PRIMARY KEY,
    article_id VARCHAR(50) NOT NULL UNIQUE,
    url TEXT NOT NULL,
    content_hash VARCHAR(64) NOT NULL,
    crawled_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    crawled_by VARCHAR(20) NOT NULL,
    success BOOLEAN NOT NULL DEFAULT TRUE
);
CREATE INDEX IF NOT EXISTS idx_crawl_dedup_url ON crawl_dedup(url);
CREATE INDEX IF NOT EXISTS idx_crawl_dedup_hash ON crawl_dedup(content_hash);
CREATE INDEX IF NOT EXISTS idx_crawl_dedup_crawled_at ON crawl_dedup(crawled_at);
CREATE INDEX IF NOT EXISTS idx_crawl_dedup_instance ON crawl_dedup(crawled_by);
"""

UPSERT_DEDUP_SQL = """
INSERT INTO crawl_dedup (article_id, url, content_hash, crawled_at, crawled_by, success)
VALUES (%s, %s, %s, %s, %s, %s)
ON CONFLICT (article_id) DO UPDATE SET
    url = EXCLUDED.url,
    content_hash = EXCLUDED.content_hash,
    crawled_at = EXCLUDED.crawled_at,
    crawled_by = EXCLUDED.crawled_by,
    success = EXCLUDED.success
"""

STATS_SQL = """
SELECT
    COUNT(*),
    COUNT(*) FILTER (WHERE success = TRUE),
    COUNT(*) FILTER (WHERE success = FALSE),
    MIN(crawled_at),
    MAX(crawled_at)
FROM crawl_dedup
"""


@dataclass
class DedupConfig:
    database_url: Optional[str] = None
    cache_size: int = 10_000
    instance_id: str = field(default_factory=lambda: socket.gethostname()[:20])

    @classmethod
    def from_env(cls) -> "DedupConfig":
        cache_size = os.getenv("DEDUP_CACHE_SIZE", "")
        return cls(
            database_url=os.getenv("DATABASE_URL") or os.getenv("POSTGRES_URL"),
            cache_size=int(cache_size) if cache_size.isdigit() else 10_000,
            instance_id=(os.getenv("CRAWLER_INSTANCE_ID") or socket.gethostname())[:20],
        )


@dataclass
class DedupRecord:
    article_id: str
    url: str
    content_hash: str
    crawled_by: str
    success: bool = True
    crawled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def params(self) -> tuple:
        return (
            self.article_id,
            self.url,
            self.content_hash,
            self.crawled_at,
            self.crawled_by,
            self.success,
        )


@dataclass
class DedupCheckResult:
    new_urls: List[str] = field(default_factory=list)
    existing_urls: List[str] = field(default_factory=list)
    total_checked: int = 0

    def dedup_ratio(self) -> float:
        """0.0 when everything is new, 1.0 when everything was seen."""
        if self.total_checked == 0:
            return 0.0
        return len(self.existing_urls) / self.total_checked


@dataclass
class DedupStats:
    total: int = 0
    success: int = 0
    failed: int = 0
    first_crawl: Optional[datetime] = None
    last_crawl: Optional[datetime] = None

    def success_rate(self) -> float:
        if self.total == 0:
            return 1.0
        return self.success / self.total


class DedupCache:
    """Bounded URL/hash sets in front of the database."""

    def __init__(self, max_size: int = 10_000):
        self.max_size = max(int(max_size), 2)
        self.urls: Set[str] = set()
        self.hashes: Set[str] = set()

    def contains_url(self, url: str) -> bool:
        return url in self.urls

    def contains_hash(self, content_hash: str) -> bool:
        return content_hash in self.hashes

    def insert_url(self, url: str) -> None:
        if len(self.urls) >= self.max_size:
            for old in list(self.urls)[: self.max_size // 2]:
                self.urls.discard(old)
        self.urls.add(url)

    def insert_hash(self, content_hash: str) -> None:
        if not content_hash:
            return
        if len(self.hashes) >= self.max_size // 2:
            for old in list(self.hashes)[: self.max_size // 4]:
                self.hashes.discard(old)
        self.hashes.add(content_hash)

    def clear(self) -> None:
        self.urls.clear()
        self.hashes.clear()


class DedupChecker:
    def __init__(self, config: Optional[DedupConfig] = None, conn_factory: Callable[[], Any] = None):
        self.config = config or DedupConfig.from_env()
        if conn_factory is None:
            conn_factory = self._connect if self.config.database_url else get_conn
        self.conn_factory = conn_factory
        self.cache = DedupCache(self.config.cache_size)

    def _connect(self):
        return psycopg2.connect(self.config.database_url)

    def _run(self, sql: str, params: Any = None, fetch: Optional[str] = None):
        conn = self.conn_factory()
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    if fetch == "one":
                        return cur.fetchone()
                    if fetch == "all":
                        return cur.fetchall()
                    return None
        finally:
            conn.close()

    def init_schema(self) -> None:
        self._run(CRAWL_DEDUP_DDL)
        print("[dedup] schema initialized")

    def exists_by_id(self, article_id: str) -> bool:
        row = self._run(
            "SELECT EXISTS(SELECT 1 FROM crawl_dedup WHERE article_id = %s)",
            (article_id,),
            fetch="one",
        )
        return bool(row and row[0])

    def exists_by_url(self, url: str) -> bool:
        if self.cache.contains_url(url):
            return True
        row = self._run(
            "SELECT EXISTS(SELECT 1 FROM crawl_dedup WHERE url = %s AND success = TRUE)",
            (url,),
            fetch="one",
        )
        exists = bool(row and row[0])
        if exists:
            self.cache.insert_url(url)
        return exists

    def exists_by_hash(self, content_hash: str) -> bool:
        if self.cache.contains_hash(content_hash):
            return True
        row = self._run(
            "SELECT EXISTS(SELECT 1 FROM crawl_dedup WHERE content_hash = %s)",
            (content_hash,),
            fetch="one",
        )
        exists = bool(row and row[0])
        if exists:
            self.cache.insert_hash(content_hash)
        return exists

    def batch_check_urls(self, urls: List[str]) -> DedupCheckResult:
        result = DedupCheckResult(total_checked=len(urls))
        to_check = []
        for url in urls:
            if self.cache.contains_url(url):
                result.existing_urls.append(url)
            else:
                to_check.append(url)
        if not to_check:
            return result

        rows = self._run(
            "SELECT url FROM crawl_dedup WHERE url = ANY(%s) AND success = TRUE",
            (to_check,),
            fetch="all",
        )
        seen = {row[0] for row in rows or []}
        for url in to_check:
            if url in seen:
                result.existing_urls.append(url)
                self.cache.insert_url(url)
            else:
                result.new_urls.append(url)
        return result

    def _remember(self, record: DedupRecord) -> None:
        self.cache.insert_url(record.url)
        self.cache.insert_hash(record.content_hash)

    def record_crawl(self, record: DedupRecord) -> None:
        self._run(UPSERT_DEDUP_SQL, record.params())
        self._remember(record)

    def batch_record_crawls(self, records: List[DedupRecord]) -> int:
        if not records:
            return 0
        conn = self.conn_factory()
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.executemany(UPSERT_DEDUP_SQL, [r.params() for r in records])
        finally:
            conn.close()
        for record in records:
            self._remember(record)
        return len(records)

    def _stats(self, sql: str, params: Any = None) -> DedupStats:
        row = self._run(sql, params, fetch="one")
        if not row:
            return DedupStats()
        return DedupStats(
            total=int(row[0] or 0),
            success=int(row[1] or 0),
            failed=int(row[2] or 0),
            first_crawl=row[3],
            last_crawl=row[4],
        )

    def get_total_stats(self) -> DedupStats:
        return self._stats(STATS_SQL)

    def get_stats_by_instance(self, instance: str) -> DedupStats:
        return self._stats(STATS_SQL + " WHERE crawled_by = %s", (instance,))

    def clear_cache(self) -> None:
        self.cache.clear()
