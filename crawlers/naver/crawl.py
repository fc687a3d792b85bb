#!/usr/bin/env python3
"""Naver News crawler.

Collect article URLs from the Naver News section list pages for a day, fetch
and parse every new article, and save each one as a Markdown record with YAML
front matter under ``output_dir``.

Sections (Naver ``sid1``): politics=100, economy=101, society=102,
culture=103, world=104, it=105.

This module exposes a `run(config_path)` entrypoint so it can be orchestrated
via `crawlers/run_crawlers.py`. The optional YAML config can override defaults
such as categories, rate limits and output paths; ``NAVER_*`` environment
variables override the YAML.
"""
from __future__ import annotations

import asyncio
import dataclasses
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from crawlers.naver.errors import CrawlerError
from crawlers.naver.fetcher import NaverFetcher, create_crawler
from crawlers.naver.listing import NewsListCrawler, is_valid_date
from crawlers.naver.models import KST, CrawlState, NewsCategory
from crawlers.naver.parser import ArticleParser
from crawlers.naver.pipeline import FAILED, SUCCESS, CrawlerPipeline, PipelineConfig, StatsSnapshot
from crawlers.naver.urls import normalize_url
from db.postgres_client import DedupChecker, DedupConfig
from storage.checkpoint import CheckpointManager, SessionTracker
from storage.markdown import ArticleStorage
from storage.repository import CrawlRepository

load_dotenv()

# list pages show roughly 20 articles each
ARTICLES_PER_LIST_PAGE = 20


# ---------- CONFIG MODEL ----------

@dataclass
class NaverCrawlerConfig:
    categories: List[str] = field(default_factory=lambda: ["politics"])
    date: Optional[str] = None                    # YYYYMMDD, default: today in KST
    max_articles: int = 100                       # per category
    output_dir: str = "output/raw"                # markdown records
    sqlite_path: str = "output/crawl.db"          # crawl metadata
    checkpoint_dir: str = "output/checkpoints"    # per-session JSON checkpoints
    state_file: str = "output/crawl_state.json"   # run-level progress
    log_file: str = "naver_failures.log"

    requests_per_second: float = 2.0
    max_concurrent: int = 5
    request_timeout: float = 30.0
    max_retries: int = 3
    base_backoff: float = 1.0
    user_agent: Optional[str] = None
    skip_existing: bool = True
    use_dedup: bool = False                       # shared Postgres dedup table

    fetch_workers: int = 5
    parse_workers: int = 3
    store_workers: int = 2
    queue_size: int = 1000

    @classmethod
    def from_yaml(cls, path: Optional[str]) -> "NaverCrawlerConfig":
        if not path:
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        cfg = cls()
        cfg.update(raw)
        return cfg

    def update(self, values: Dict[str, Any]) -> None:
        """Shallow override of known fields, coerced to the default's type."""
        for f in dataclasses.fields(self):
            if f.name not in values or values[f.name] is None:
                continue
            value = values[f.name]
            if f.name == "categories":
                if isinstance(value, str):
                    value = [value]
                value = [str(v) for v in value]
            elif f.type in ("int", int):
                value = int(value)
            elif f.type in ("float", float):
                value = float(value)
            elif f.type in ("bool", bool):
                value = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes")
            else:
                value = str(value)
            setattr(self, f.name, value)

    def apply_env(self) -> None:
        if os.getenv("NAVER_RATE_LIMIT"):
            self.requests_per_second = float(os.environ["NAVER_RATE_LIMIT"])
        if os.getenv("NAVER_MAX_CONCURRENT"):
            self.max_concurrent = int(os.environ["NAVER_MAX_CONCURRENT"])
        if os.getenv("NAVER_REQUEST_TIMEOUT"):
            self.request_timeout = float(os.environ["NAVER_REQUEST_TIMEOUT"])
        if os.getenv("NAVER_USER_AGENT"):
            self.user_agent = os.environ["NAVER_USER_AGENT"]
        if os.getenv("NAVER_SQLITE_PATH"):
            self.sqlite_path = os.environ["NAVER_SQLITE_PATH"]

    def validate(self) -> None:
        if self.max_concurrent <= 0:
            raise ValueError("max_concurrent must be greater than 0")
        if self.requests_per_second <= 0:
            raise ValueError("requests_per_second must be greater than 0")
        if min(self.fetch_workers, self.parse_workers, self.store_workers) <= 0:
            raise ValueError("worker counts must be greater than 0")
        if not self.categories:
            raise ValueError("at least one category is required")
        if self.date and not is_valid_date(self.date):
            raise ValueError(f"Invalid date: {self.date}. Expected YYYYMMDD")
        for name in self.categories:
            if NewsCategory.parse(name) is None:
                raise ValueError(
                    f"Unknown category: {name}. Valid: politics, economy, society, culture, world, it"
                )

    def resolved_categories(self) -> List[NewsCategory]:
        return [NewsCategory.parse(name) for name in self.categories]

    def crawl_date(self) -> str:
        return self.date or datetime.now(KST).strftime("%Y%m%d")

    def max_pages(self) -> int:
        if self.max_articles <= 0:
            return 0
        return -(-self.max_articles // ARTICLES_PER_LIST_PAGE)

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            fetch_workers=min(self.fetch_workers, self.max_concurrent),
            parse_workers=self.parse_workers,
            store_workers=self.store_workers,
            queue_size=self.queue_size,
            output_dir=self.output_dir,
            requests_per_second=self.requests_per_second,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
        )


# ---------- helpers ----------

def now_iso() -> str:
    return datetime.now(KST).isoformat()


def log_failure(cfg: NaverCrawlerConfig, target: str, error: str) -> None:
    Path(cfg.log_file).parent.mkdir(parents=True, exist_ok=True)
    with open(cfg.log_file, "a", encoding="utf-8") as f:
        f.write(f"[{now_iso()}] {target}  |  {error}\n")


def make_fetcher(crawler: Any, cfg: NaverCrawlerConfig) -> NaverFetcher:
    return NaverFetcher(
        crawler,
        requests_per_second=cfg.requests_per_second,
        max_retries=cfg.max_retries,
        base_backoff=cfg.base_backoff,
        timeout=cfg.request_timeout,
    )


# ---------- crawling ----------

async def crawl_category(
    category: NewsCategory,
    cfg: NaverCrawlerConfig,
    fetcher: Any,
    repository: Optional[CrawlRepository] = None,
    tracker: Optional[SessionTracker] = None,
    dedup: Optional[DedupChecker] = None,
    state: Optional[CrawlState] = None,
) -> StatsSnapshot:
    """Crawl one section for ``cfg.crawl_date()`` through the pipeline."""
    date = cfg.crawl_date()
    print(f"\n[naver] Crawling category: {category.korean_name} ({category.slug}) for {date}")

    urls = await NewsListCrawler(fetcher).collect_urls(category, date, cfg.max_pages())
    print(f"  -> found {len(urls)} article URLs")

    if cfg.skip_existing and repository is not None:
        fresh = repository.filter_uncrawled(urls)
        print(f"  -> new articles: {len(fresh)} (already crawled: {len(urls) - len(fresh)})")
        urls = fresh
    if dedup is not None:
        urls = dedup.batch_check_urls(urls).new_urls
    if tracker is not None:
        urls = tracker.init_session(category.slug, urls).pending(urls)
    if cfg.max_articles > 0:
        urls = urls[: cfg.max_articles]

    pipeline = CrawlerPipeline(
        cfg.pipeline_config(),
        fetcher,
        storage=ArticleStorage(cfg.output_dir, skip_existing=cfg.skip_existing),
        repository=repository,
        tracker=tracker,
        dedup=dedup,
        on_failure=partial(log_failure, cfg),
    )
    snapshot = await pipeline.run(urls)

    if repository is not None:
        repository.save_checkpoint("last_category", category.slug)
    if tracker is not None:
        tracker.finalize()
    if state is not None:
        state.last_category = category.slug
        for result in pipeline.stats.results:
            if result.status == SUCCESS:
                state.mark_completed(result.article_id or result.url)
            elif result.status == FAILED:
                state.record_error()
            state.last_url = result.url
    return snapshot


async def crawl_single_url(
    url: str,
    cfg: NaverCrawlerConfig,
    fetcher: Any,
    parser: Optional[ArticleParser] = None,
    storage: Optional[ArticleStorage] = None,
    repository: Optional[CrawlRepository] = None,
    state: Optional[CrawlState] = None,
) -> Optional[Path]:
    """Fetch, parse and save one article. Returns ``None`` when it was skipped."""
    url = normalize_url(url) or url
    parser = parser or ArticleParser()
    storage = storage or ArticleStorage(cfg.output_dir, skip_existing=cfg.skip_existing)

    html = await fetcher.fetch(url)
    article = parser.parse_with_fallback(html, url)

    if repository is not None and repository.is_content_duplicate(article.content_hash, article.url):
        print(f"[naver] duplicate content, skipping {url}")
        repository.record_skipped(url, "duplicate content", article.id)
        return None

    path = storage.save(article)
    if repository is not None:
        repository.record_success(article)
    if state is not None:
        state.mark_completed(article.id)
    if path:
        print(f"✔ Saved [{article.category}]: {path}")
    return path


# ---------- public entrypoints ----------

def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> NaverCrawlerConfig:
    cfg = NaverCrawlerConfig.from_yaml(config_path)
    cfg.apply_env()
    if overrides:
        cfg.update(overrides)
    cfg.validate()
    return cfg


async def _main_async(cfg: NaverCrawlerConfig, url: Optional[str] = None) -> Dict[str, StatsSnapshot]:
    repository = CrawlRepository(cfg.sqlite_path)
    tracker = SessionTracker(CheckpointManager(cfg.checkpoint_dir))
    state = CrawlState.load(cfg.state_file)
    dedup = None
    if cfg.use_dedup:
        dedup = DedupChecker(DedupConfig.from_env())
        dedup.init_schema()

    categories = cfg.resolved_categories()
    results: Dict[str, StatsSnapshot] = {}
    try:
        async with create_crawler(categories[0].section_id, cfg.user_agent) as crawler:
            fetcher = make_fetcher(crawler, cfg)
            if url:
                print(f"[naver] Crawling single URL: {url}")
                try:
                    await crawl_single_url(url, cfg, fetcher, repository=repository, state=state)
                except Exception as e:  # noqa: BLE001
                    print(f"❌ Error crawling {url}: {e}")
                    log_failure(cfg, url, str(e))
                    repository.record_failure(url, str(e))
                    state.record_error()
            else:
                for category in categories:
                    try:
                        results[category.slug] = await crawl_category(
                            category, cfg, fetcher, repository, tracker, dedup, state
                        )
                    except CrawlerError as e:
                        print(f"❌ Failed to process category '{category.slug}': {e}")
                        log_failure(cfg, category.slug, str(e))
    finally:
        state.save(cfg.state_file)
        print_summary(cfg, repository, state)
        repository.close()
    return results


def print_summary(cfg: NaverCrawlerConfig, repository: CrawlRepository, state: CrawlState) -> None:
    stats = state.stats()
    db_stats = repository.get_stats()
    print("\nCrawl Summary")
    print("=============")
    print(f"Total processed: {stats.total_crawled}")
    print(f"Failed: {stats.total_errors}")
    print(f"Output directory: {cfg.output_dir}")
    print(f"Database: {cfg.sqlite_path}")
    print(f"Records: {db_stats.total} (success {db_stats.success}, failed {db_stats.failed}, "
          f"skipped {db_stats.skipped}, {db_stats.success_rate() * 100:.1f}% success)")


def run(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    url: Optional[str] = None,
) -> Dict[str, StatsSnapshot]:
    """Entry point used by `crawlers/run_crawlers.py` and `main_crawler.py`.

    `config_path` may point to a YAML file with NaverCrawlerConfig overrides.
    """
    cfg = load_config(config_path, overrides)
    return asyncio.run(_main_async(cfg, url))


if __name__ == "__main__":  # pragma: no cover
    # Allow running directly as a script as well
    cfg_path = sys.argv[1] if len(sys.argv) > 1 else None
    run(cfg_path)
