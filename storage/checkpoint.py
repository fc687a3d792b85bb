"""Per-session crawl checkpoints stored as JSON files.

A session covers one category for one day (``{category}_{YYYYMMDD}``), so a
crawl interrupted mid-way picks up the same session when restarted that day.
"""
from __future__ import annotations

import json
import os
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

MAX_URL_ATTEMPTS = 3
SUFFIX = ".checkpoint.json"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Any) -> datetime:
    if not value:
        return _now()
    return datetime.fromisoformat(str(value))


@dataclass
class FailedUrl:
    url: str
    error: str
    attempts: int = 1
    last_attempt: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "error": self.error,
            "attempts": self.attempts,
            "last_attempt": self.last_attempt.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailedUrl":
        return cls(
            url=data["url"],
            error=data.get("error", ""),
            attempts=int(data.get("attempts", 1)),
            last_attempt=_parse_dt(data.get("last_attempt")),
        )


@dataclass
class SessionStats:
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    bytes_fetched: int = 0
    duration_secs: int = 0


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


@dataclass
class CrawlSession:
    category: str
    total_urls: int = 0
    session_id: str = field(default_factory=new_session_id)
    current_index: int = 0
    processed_urls: Set[str] = field(default_factory=set)
    failed_urls: List[FailedUrl] = field(default_factory=list)
    skipped_urls: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    stats: SessionStats = field(default_factory=SessionStats)

    @property
    def name(self) -> str:
        return session_name(self.category, self.created_at)

    def mark_processed(self, url: str) -> None:
        self.processed_urls.add(url)
        self.stats.success_count += 1
        self._advance()

    def mark_failed(self, url: str, error: str) -> None:
        for failed in self.failed_urls:
            if failed.url == url:
                failed.attempts += 1
                failed.error = error
                failed.last_attempt = _now()
                break
        else:
            self.failed_urls.append(FailedUrl(url=url, error=error))
        self.stats.failed_count += 1
        self._advance()

    def mark_skipped(self, url: str) -> None:
        self.skipped_urls.add(url)
        self.stats.skipped_count += 1
        self._advance()

    def _advance(self) -> None:
        self.current_index += 1
        self.updated_at = _now()

    def remaining(self) -> int:
        return max(self.total_urls - self.current_index, 0)

    def completion_percentage(self) -> float:
        if self.total_urls == 0:
            return 100.0
        return self.current_index / self.total_urls * 100.0

    def is_complete(self) -> bool:
        return self.current_index >= self.total_urls

    def retry_urls(self) -> List[str]:
        return [f.url for f in self.failed_urls if f.attempts < MAX_URL_ATTEMPTS]

    def pending(self, urls: List[str]) -> List[str]:
        """``urls`` minus those already processed or skipped in this session."""
        return [u for u in urls if u not in self.processed_urls and u not in self.skipped_urls]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "category": self.category,
            "total_urls": self.total_urls,
            "current_index": self.current_index,
            "processed_urls": sorted(self.processed_urls),
            "failed_urls": [f.to_dict() for f in self.failed_urls],
            "skipped_urls": sorted(self.skipped_urls),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "stats": asdict(self.stats),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlSession":
        return cls(
            session_id=data.get("session_id") or new_session_id(),
            category=data["category"],
            total_urls=int(data.get("total_urls", 0)),
            current_index=int(data.get("current_index", 0)),
            processed_urls=set(data.get("processed_urls") or []),
            failed_urls=[FailedUrl.from_dict(f) for f in data.get("failed_urls") or []],
            skipped_urls=set(data.get("skipped_urls") or []),
            created_at=_parse_dt(data.get("created_at")),
            updated_at=_parse_dt(data.get("updated_at")),
            stats=SessionStats(**(data.get("stats") or {})),
        )


def session_name(category: str, day: Optional[datetime] = None) -> str:
    day = day or _now()
    return f"{category}_{day.strftime('%Y%m%d')}"


class CheckpointManager:
    def __init__(self, checkpoint_dir: str | os.PathLike, auto_save_interval: int = 100):
        self.checkpoint_dir = Path(checkpoint_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        self.auto_save_interval = max(int(auto_save_interval), 1)
        self._counter = 0

    def path_for(self, name: str) -> Path:
        return self.checkpoint_dir / f"{name}{SUFFIX}"

    def save(self, name: str, session: CrawlSession) -> Path:
        path = self.path_for(name)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
        return path

    def load(self, name: str) -> Optional[CrawlSession]:
        path = self.path_for(name)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return CrawlSession.from_dict(json.load(f))

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def delete(self, name: str) -> None:
        path = self.path_for(name)
        if path.exists():
            path.unlink()

    def list(self) -> List[str]:
        return sorted(
            p.name[: -len(SUFFIX)]
            for p in self.checkpoint_dir.iterdir()
            if p.is_file() and p.name.endswith(SUFFIX)
        )

    def should_auto_save(self) -> bool:
        self._counter += 1
        return self._counter % self.auto_save_interval == 0

    def reset_counter(self) -> None:
        self._counter = 0


class SessionTracker:
    """Holds the active session and saves it every ``auto_save_interval`` marks."""

    def __init__(self, manager: CheckpointManager):
        self.manager = manager
        self.session: Optional[CrawlSession] = None

    def init_session(self, category: str, urls: List[str]) -> CrawlSession:
        name = session_name(category)
        session = self.manager.load(name)
        if session is not None:
            session.total_urls = len(urls)
            print(
                f"[checkpoint] resuming {name}: {len(session.pending(urls))} remaining, "
                f"{len(session.processed_urls)} processed"
            )
        else:
            session = CrawlSession(category=category, total_urls=len(urls))
            print(f"[checkpoint] new session {name}: {len(urls)} urls")
        self.session = session
        self.manager.reset_counter()
        return session

    def _maybe_save(self) -> None:
        if self.session is not None and self.manager.should_auto_save():
            self.manager.save(self.session.name, self.session)

    def mark_processed(self, url: str) -> None:
        if self.session is not None:
            self.session.mark_processed(url)
            self._maybe_save()

    def mark_failed(self, url: str, error: str) -> None:
        if self.session is not None:
            self.session.mark_failed(url, error)
            self._maybe_save()

    def mark_skipped(self, url: str) -> None:
        if self.session is not None:
            self.session.mark_skipped(url)
            self._maybe_save()

    def force_save(self) -> Optional[Path]:
        if self.session is None:
            return None
        return self.manager.save(self.session.name, self.session)

    def finalize(self, delete_on_success: bool = False) -> None:
        if self.session is None:
            return
        if delete_on_success and self.session.is_complete() and not self.session.failed_urls:
            self.manager.delete(self.session.name)
        else:
            self.manager.save(self.session.name, self.session)
