"""Markdown corpus records: one article per file, YAML front matter + body.

    ---
    id: 001_0014000001
    title: ...
    category: it
    publisher: 연합뉴스
    author: ...
    published_at: '2024-12-15 14:30'
    crawled_at: '2024-12-15 05:31:02'
    url: https://n.news.naver.com/mnews/article/001/0014000001
    oid: '001'
    aid: '0014000001'
    content_hash: 9f86d0...
    ---

    # {title}

    {body}
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml

from crawlers.naver.models import KST, ParsedArticle

FRONT_MATTER_KEYS = [
    "id",
    "title",
    "category",
    "publisher",
    "author",
    "published_at",
    "crawled_at",
    "url",
    "oid",
    "aid",
    "content_hash",
]
PUBLISHED_FORMAT = "%Y-%m-%d %H:%M"
CRAWLED_FORMAT = "%Y-%m-%d %H:%M:%S"
TITLE_FILENAME_LEN = 50

_FILENAME_IDS = re.compile(r"^(\d{3})_(\d{10,})")
_OID = re.compile(r"^\d{3}$")
_AID = re.compile(r"^\d{10,}$")
_ARTICLE_ID = re.compile(r"^\d{3}_\d{10,}$")
_KEY_VALUE = re.compile(r"^([A-Za-z_]+)\s*:\s*(.*)$")


# ---------- rendering ----------

def _fmt(dt: Optional[datetime], fmt: str, tz: timezone) -> str:
    if not dt:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz)
    return dt.strftime(fmt)


def front_matter(article: ParsedArticle) -> Dict[str, str]:
    """Header values; publish time in KST as shown on Naver, crawl time in UTC."""
    return {
        "id": article.id,
        "title": article.title or "",
        "category": article.category or "",
        "publisher": article.publisher or "",
        "author": article.author or "",
        "published_at": _fmt(article.published_at, PUBLISHED_FORMAT, KST),
        "crawled_at": _fmt(article.crawled_at, CRAWLED_FORMAT, timezone.utc),
        "url": article.url or "",
        "oid": article.oid or "",
        "aid": article.aid or "",
        "content_hash": article.content_hash or "",
    }


def render_article(article: ParsedArticle) -> str:
    header = yaml.safe_dump(
        front_matter(article),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=10_000,
    )
    return f"---\n{header}---\n\n# {article.title}\n\n{article.content}\n"


def sanitize_filename(text: str, max_len: int = TITLE_FILENAME_LEN) -> str:
    kept = "".join(ch for ch in text if ch.isalnum() or ch in "-_ ")[:max_len]
    return kept.strip().replace(" ", "_").lower()


def article_filename(article: ParsedArticle) -> str:
    title = sanitize_filename(article.title)
    suffix = f"_{title}" if title else ""
    return f"{article.oid}_{article.aid}{suffix}.md"


# ---------- parsing ----------

@dataclass
class ArticleRecord:
    metadata: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    path: Optional[str] = None

    def get(self, key: str, default: str = "") -> str:
        return self.metadata.get(key) or default

    @property
    def oid(self) -> str:
        return self.get("oid")

    @property
    def aid(self) -> str:
        return self.get("aid")

    @property
    def id(self) -> str:
        return self.get("id") or f"{self.oid}_{self.aid}"

    @property
    def title(self) -> str:
        return self.get("title")

    @property
    def category(self) -> str:
        return self.get("category") or "general"

    @property
    def url(self) -> str:
        return self.get("url")

    def published_at(self) -> Optional[datetime]:
        return _parse_time(self.get("published_at"), PUBLISHED_FORMAT, KST)

    def crawled_at(self) -> Optional[datetime]:
        return _parse_time(self.get("crawled_at"), CRAWLED_FORMAT, timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.metadata, "id": self.id, "body": self.body, "path": self.path}


def _parse_time(value: str, fmt: str, tz: timezone) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, fmt).replace(tzinfo=tz)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)


def _coerce(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        fmt = PUBLISHED_FORMAT if key == "published_at" else CRAWLED_FORMAT
        return value.strftime(fmt)
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _split_front_matter(text: str) -> Tuple[Optional[str], str]:
    lines = text.split("\n")
    if not lines or lines[0].strip() != "---":
        return None, text
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1:])
    return None, text


def _line_pairs(block: str) -> Dict[str, str]:
    pairs = {}
    for line in block.split("\n"):
        match = _KEY_VALUE.match(line.strip())
        if match:
            value = match.group(2).strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
                value = value[1:-1]
            pairs[match.group(1)] = value
    return pairs


def _load_header(block: str) -> Dict[str, str]:
    try:
        # BaseLoader keeps every scalar a string, so zero-padded ids survive
        data = yaml.load(block, Loader=yaml.BaseLoader)
    except yaml.YAMLError:
        data = None
    if not isinstance(data, dict):
        return _line_pairs(block)
    return {str(k): _coerce(str(k), v) for k, v in data.items()}


def parse_markdown(text: str, path: Optional[str] = None) -> ArticleRecord:
    """Parse one corpus file. Malformed headers degrade to ``key: value`` lines."""
    text = (text or "").replace("\r\n", "\n")
    block, rest = _split_front_matter(text)
    metadata = _load_header(block) if block is not None else {}

    lines = rest.strip("\n").split("\n")
    heading = None
    if lines and lines[0].startswith("# "):
        heading = lines[0][2:].strip()
        lines = lines[1:]
    body = "\n".join(lines).strip()

    if not metadata.get("title") and heading:
        metadata["title"] = heading

    if not (_OID.match(metadata.get("oid", "")) and _AID.match(metadata.get("aid", ""))):
        stem = Path(path).stem if path else ""
        match = _FILENAME_IDS.match(stem)
        if match:
            metadata["oid"], metadata["aid"] = match.group(1), match.group(2)
        elif not metadata.get("oid") or not metadata.get("aid"):
            metadata["oid"] = "000"
            metadata["aid"] = stem or "unknown"
    if not _ARTICLE_ID.match(metadata.get("id", "")):
        metadata["id"] = f"{metadata['oid']}_{metadata['aid']}"

    return ArticleRecord(metadata=metadata, body=body, path=path)


def read_record(path: str | os.PathLike) -> ArticleRecord:
    with open(path, "r", encoding="utf-8") as f:
        return parse_markdown(f.read(), str(path))


def iter_records(root: str | os.PathLike) -> Iterator[ArticleRecord]:
    """Yield every ``*.md`` record under ``root`` in path order."""
    root = Path(root)
    if not root.exists():
        return
    for path in sorted(root.rglob("*.md")):
        yield read_record(path)


def find_record(root: str | os.PathLike, article_id: str) -> Optional[ArticleRecord]:
    root = Path(root)
    if not root.exists() or not article_id:
        return None
    for path in sorted(root.rglob(f"{article_id}*.md")):
        stem = path.stem
        if stem == article_id or stem.startswith(f"{article_id}_"):
            return read_record(path)
    return None


# ---------- writing ----------

class MarkdownWriter:
    def __init__(self, output_dir: str | os.PathLike):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def render(self, article: ParsedArticle) -> str:
        return render_article(article)

    def path_for(self, article: ParsedArticle) -> Path:
        return self.output_dir / article_filename(article)

    def exists(self, article: ParsedArticle) -> bool:
        return self.path_for(article).exists()

    def save(self, article: ParsedArticle) -> Path:
        path = self.path_for(article)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.render(article))
        return path

    def save_batch(self, articles: List[ParsedArticle]) -> List[Path]:
        return [self.save(a) for a in articles]


@dataclass
class BatchSaveResult:
    saved: List[Path] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def total(self) -> int:
        return len(self.saved) + len(self.failed) + len(self.skipped)

    def success_rate(self) -> float:
        if self.total() == 0:
            return 1.0
        return len(self.saved) / self.total()


class ArticleStorage:
    """``MarkdownWriter`` plus skip-existing handling."""

    def __init__(self, output_dir: str | os.PathLike, skip_existing: bool = True):
        self.writer = MarkdownWriter(output_dir)
        self.skip_existing = skip_existing

    @property
    def output_dir(self) -> Path:
        return self.writer.output_dir

    def exists(self, article: ParsedArticle) -> bool:
        return self.writer.exists(article)

    def save(self, article: ParsedArticle) -> Optional[Path]:
        if self.skip_existing and self.writer.exists(article):
            return None
        return self.writer.save(article)

    def save_batch(self, articles: List[ParsedArticle]) -> BatchSaveResult:
        result = BatchSaveResult()
        for article in articles:
            if self.skip_existing and self.writer.exists(article):
                result.skipped.append(article.id)
                continue
            try:
                result.saved.append(self.writer.save(article))
            except OSError as e:
                result.failed.append((article.id, str(e)))
        print(
            f"[storage] batch saved={len(result.saved)} "
            f"failed={len(result.failed)} skipped={len(result.skipped)}"
        )
        return result
