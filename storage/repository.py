"""SQLite crawl metadata: which URLs were crawled, with what outcome and hash.

Used for URL-level skip logic between runs and for content-hash
de-duplication inside a single machine's crawl. ``crawl_state`` is a small
key/value table for resume checkpoints (e.g. ``last_category``).
"""
from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from crawlers.naver.models import ParsedArticle

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUSES = (STATUS_SUCCESS, STATUS_FAILED, STATUS_SKIPPED)

# stays well under SQLite's bound-parameter limit
BATCH_SIZE = 500

SCHEMA = """
CREATE TABLE IF NOT EXISTS crawl_metadata (
    id TEXT PRIMARY KEY,
    url TEXT NOT NULL UNIQUE,
    content_hash TEXT NOT NULL,
    crawled_at TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'success',
    error_message TEXT
);
CREATE INDEX IF NOT EXISTS idx_crawl_metadata_url ON crawl_metadata(url);
CREATE INDEX IF NOT EXISTS idx_crawl_metadata_status ON crawl_metadata(status);
CREATE INDEX IF NOT EXISTS idx_crawl_metadata_hash ON crawl_metadata(content_hash);
CREATE TABLE IF NOT EXISTS crawl_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


@dataclass
class CrawlRecord:
    id: str
    url: str
    content_hash: str
    crawled_at: str
    status: str
    error_message: Optional[str] = None


@dataclass
class RepositoryStats:
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0

    def success_rate(self) -> float:
        if self.total == 0:
            return 1.0
        return self.success / self.total

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "success_rate": self.success_rate(),
        }


def failure_id(url: str) -> str:
    return f"fail_{sha256(url.encode('utf-8')).hexdigest()}"[:40]


def _chunks(items: List[str], size: int = BATCH_SIZE) -> Iterable[List[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class CrawlRepository:
    def __init__(self, path: str | os.PathLike = ":memory:"):
        path = str(path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @classmethod
    def in_memory(cls) -> "CrawlRepository":
        return cls(":memory:")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _scalar(self, sql: str, params: Tuple = ()) -> int:
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    # ---------- URL / hash checks ----------

    def is_url_crawled(self, url: str) -> bool:
        return bool(self._scalar(
            "SELECT EXISTS(SELECT 1 FROM crawl_metadata WHERE url = ? AND status = 'success')",
            (url,),
        ))

    def is_content_duplicate(self, content_hash: Optional[str], url: Optional[str] = None) -> bool:
        """True when another URL already holds this body. The URL's own row never counts."""
        if not content_hash:
            return False
        return bool(self._scalar(
            "SELECT EXISTS(SELECT 1 FROM crawl_metadata WHERE content_hash = ? AND url != ?)",
            (content_hash, url or ""),
        ))

    def _crawled_subset(self, urls: List[str]) -> Set[str]:
        crawled: Set[str] = set()
        for chunk in _chunks(urls):
            placeholders = ",".join("?" for _ in chunk)
            sql = (
                f"SELECT url FROM crawl_metadata WHERE url IN ({placeholders}) "
                "AND status = 'success'"
            )
            with self._lock:
                crawled.update(row[0] for row in self._conn.execute(sql, chunk))
        return crawled

    def filter_uncrawled(self, urls: List[str]) -> List[str]:
        crawled = self._crawled_subset(list(urls))
        return [u for u in urls if u not in crawled]

    def batch_check_urls(self, urls: List[str]) -> List[Tuple[str, bool]]:
        crawled = self._crawled_subset(list(urls))
        return [(u, u in crawled) for u in urls]

    # ---------- writes ----------

    def mark_url_crawled(
        self,
        article_id: str,
        url: str,
        content_hash: str,
        status: str,
        error_message: Optional[str] = None,
    ) -> None:
        if status not in STATUSES:
            raise ValueError(f"Unknown crawl status: {status}")
        effective_id = article_id or failure_id(url)
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO crawl_metadata
                    (id, url, content_hash, crawled_at, status, error_message)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (effective_id, url, content_hash or "", now, status, error_message),
            )
            self._conn.commit()

    def record_success(self, article: ParsedArticle) -> None:
        self.mark_url_crawled(article.id, article.url, article.content_hash or "", STATUS_SUCCESS)

    def record_failure(self, url: str, error: str) -> None:
        self.mark_url_crawled("", url, "", STATUS_FAILED, error)

    def record_skipped(self, url: str, reason: str, article_id: str = "") -> None:
        # never downgrade a URL that already succeeded
        if self.is_url_crawled(url):
            return
        self.mark_url_crawled(article_id, url, "", STATUS_SKIPPED, reason)

    # ---------- reads ----------

    def get_crawl_record(self, url: str) -> Optional[CrawlRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, url, content_hash, crawled_at, status, error_message "
                "FROM crawl_metadata WHERE url = ?",
                (url,),
            ).fetchone()
        return CrawlRecord(*row) if row else None

    def get_stats(self) -> RepositoryStats:
        counts = {status: 0 for status in STATUSES}
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) FROM crawl_metadata GROUP BY status"
            ).fetchall()
        for status, count in rows:
            counts[status] = count
        return RepositoryStats(
            total=sum(count for _, count in rows),
            success=counts[STATUS_SUCCESS],
            failed=counts[STATUS_FAILED],
            skipped=counts[STATUS_SKIPPED],
        )

    # ---------- checkpoints ----------

    def save_checkpoint(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO crawl_state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, now),
            )
            self._conn.commit()

    def load_checkpoint(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM crawl_state WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None
