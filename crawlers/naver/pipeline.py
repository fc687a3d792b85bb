"""Fetch -> parse -> store crawl pipeline on asyncio queues.

Three worker pools are connected by bounded queues; every URL put into the
pipeline ends as exactly one ``CrawlResult`` (success, failed or skipped).
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Set

from crawlers.naver.errors import ParseError
from crawlers.naver.models import ParsedArticle, category_from_url
from crawlers.naver.parser import ArticleParser
from db.postgres_client import DedupRecord
from storage.markdown import ArticleStorage

SUCCESS = "success"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class PipelineConfig:
    fetch_workers: int = 5
    parse_workers: int = 3
    store_workers: int = 2
    queue_size: int = 1000
    output_dir: str = "output/raw"
    requests_per_second: float = 2.0
    request_timeout: float = 30.0
    max_retries: int = 3


@dataclass
class ParseJob:
    url: str
    html: str
    category: str


@dataclass
class StoreJob:
    url: str
    article: ParsedArticle


@dataclass
class CrawlResult:
    url: str
    status: str
    article_id: Optional[str] = None
    error: Optional[str] = None
    path: Optional[Path] = None


@dataclass
class StatsSnapshot:
    total_jobs: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    bytes_fetched: int = 0

    def completed(self) -> int:
        return self.success + self.failed + self.skipped

    def success_rate(self) -> float:
        if self.completed() == 0:
            return 1.0
        return self.success / self.completed()


@dataclass
class PipelineStats:
    total_jobs: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    results: List[CrawlResult] = field(default_factory=list)

    def record(self, result: CrawlResult) -> None:
        if result.status == SUCCESS:
            self.success += 1
        elif result.status == FAILED:
            self.failed += 1
        else:
            self.skipped += 1
        self.results.append(result)

    def completion_percentage(self) -> float:
        if self.total_jobs == 0:
            return 100.0
        return (self.success + self.failed + self.skipped) / self.total_jobs * 100.0

    def snapshot(self, bytes_fetched: int = 0) -> StatsSnapshot:
        return StatsSnapshot(
            total_jobs=self.total_jobs,
            success=self.success,
            failed=self.failed,
            skipped=self.skipped,
            bytes_fetched=bytes_fetched,
        )


class CrawlerPipeline:
    def __init__(
        self,
        config: PipelineConfig,
        fetcher: Any,
        parser: Optional[ArticleParser] = None,
        storage: Optional[ArticleStorage] = None,
        repository: Any = None,
        tracker: Any = None,
        dedup: Any = None,
        on_failure: Optional[Callable[[str, str], None]] = None,
    ):
        if min(config.fetch_workers, config.parse_workers, config.store_workers) < 1:
            raise ValueError("every worker pool needs at least one worker")
        self.config = config
        self.fetcher = fetcher
        self.parser = parser or ArticleParser()
        self.storage = storage or ArticleStorage(config.output_dir, skip_existing=True)
        self.repository = repository
        self.tracker = tracker
        self.dedup = dedup
        self.on_failure = on_failure
        self.stats = PipelineStats()
        self._seen_hashes: Set[str] = set()

    # ---------- results ----------

    def _report(self, result: CrawlResult, article: Optional[ParsedArticle] = None) -> None:
        self.stats.record(result)

        if result.status == SUCCESS:
            print(f"✔ Saved [{result.article_id}]: {result.path}")
        elif result.status == FAILED:
            print(f"❌ Error crawling {result.url}: {result.error}")
        else:
            print(f"[pipeline] skipped {result.url}: {result.error}")

        # the result is already counted, bookkeeping errors only get logged
        try:
            self._record(result, article)
        except Exception as e:  # noqa: BLE001
            print(f"[pipeline] bookkeeping failed for {result.url}: {e}")

    def _record(self, result: CrawlResult, article: Optional[ParsedArticle]) -> None:
        if result.status == FAILED and self.on_failure:
            self.on_failure(result.url, result.error or "")

        if self.repository is not None:
            if result.status == SUCCESS and article is not None:
                self.repository.record_success(article)
            elif result.status == FAILED:
                self.repository.record_failure(result.url, result.error or "")
            else:
                self.repository.record_skipped(result.url, result.error or "", result.article_id or "")

        if self.dedup is not None and article is not None and result.status == SUCCESS:
            self._record_dedup(article)

        if self.tracker is not None:
            if result.status == SUCCESS:
                self.tracker.mark_processed(result.url)
            elif result.status == FAILED:
                self.tracker.mark_failed(result.url, result.error or "")
            else:
                self.tracker.mark_skipped(result.url)

    def _record_dedup(self, article: ParsedArticle) -> None:
        try:
            self.dedup.record_crawl(
                DedupRecord(
                    article_id=article.id,
                    url=article.url,
                    content_hash=article.content_hash or "",
                    crawled_by=self.dedup.config.instance_id,
                )
            )
        except Exception as e:  # noqa: BLE001
            print(f"[pipeline] dedup record failed for {article.id}: {e}")

    def _is_duplicate(self, content_hash: Optional[str], url: str) -> bool:
        if not content_hash:
            return False
        if content_hash in self._seen_hashes:
            return True
        if self.repository is not None and self.repository.is_content_duplicate(content_hash, url):
            return True
        if self.dedup is not None and self.dedup.exists_by_hash(content_hash):
            return True
        return False

    # ---------- workers ----------

    async def _fetch_worker(self, fetch_q: asyncio.Queue, parse_q: asyncio.Queue) -> None:
        while True:
            url = await fetch_q.get()
            try:
                try:
                    html = await self.fetcher.fetch(url)
                except Exception as e:  # noqa: BLE001
                    self._report(CrawlResult(url=url, status=FAILED, error=str(e)))
                    continue
                await parse_q.put(ParseJob(url=url, html=html, category=category_from_url(url)))
            finally:
                fetch_q.task_done()

    async def _parse_worker(self, parse_q: asyncio.Queue, store_q: asyncio.Queue) -> None:
        while True:
            job: ParseJob = await parse_q.get()
            try:
                result = None
                article = None
                try:
                    article = self.parser.parse_with_fallback(job.html, job.url)
                    if not article.category:
                        article.category = job.category
                    if self._is_duplicate(article.content_hash, article.url):
                        result = CrawlResult(
                            url=job.url, status=SKIPPED, article_id=article.id, error="duplicate content"
                        )
                except ParseError as e:
                    result = CrawlResult(url=job.url, status=FAILED, error=str(e))
                except Exception as e:  # noqa: BLE001
                    result = CrawlResult(url=job.url, status=FAILED, error=f"parse: {e}")
                if result is not None:
                    self._report(result)
                    continue
                self._seen_hashes.add(article.content_hash)
                await store_q.put(StoreJob(url=job.url, article=article))
            finally:
                parse_q.task_done()

    async def _store_worker(self, store_q: asyncio.Queue) -> None:
        while True:
            job: StoreJob = await store_q.get()
            article = job.article
            try:
                try:
                    if self.storage.skip_existing and self.storage.exists(article):
                        result = CrawlResult(
                            url=job.url, status=SKIPPED, article_id=article.id, error="already exists"
                        )
                    else:
                        path = self.storage.writer.save(article)
                        result = CrawlResult(url=job.url, status=SUCCESS, article_id=article.id, path=path)
                except Exception as e:  # noqa: BLE001
                    result = CrawlResult(
                        url=job.url, status=FAILED, article_id=article.id, error=f"store: {e}"
                    )
                self._report(result, article if result.status == SUCCESS else None)
            finally:
                store_q.task_done()

    # ---------- entrypoint ----------

    async def run(self, urls: List[str]) -> StatsSnapshot:
        cfg = self.config
        self.stats.total_jobs += len(urls)
        print(
            f"[pipeline] {len(urls)} urls, workers "
            f"fetch={cfg.fetch_workers} parse={cfg.parse_workers} store={cfg.store_workers}"
        )

        fetch_q: asyncio.Queue = asyncio.Queue(maxsize=cfg.queue_size)
        parse_q: asyncio.Queue = asyncio.Queue(maxsize=cfg.queue_size)
        store_q: asyncio.Queue = asyncio.Queue(maxsize=cfg.queue_size)

        workers = [
            asyncio.create_task(self._fetch_worker(fetch_q, parse_q))
            for _ in range(cfg.fetch_workers)
        ]
        workers += [
            asyncio.create_task(self._parse_worker(parse_q, store_q))
            for _ in range(cfg.parse_workers)
        ]
        workers += [
            asyncio.create_task(self._store_worker(store_q))
            for _ in range(cfg.store_workers)
        ]

        try:
            for url in urls:
                await fetch_q.put(url)
            await fetch_q.join()
            await parse_q.join()
            await store_q.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        snapshot = self.stats.snapshot(getattr(self.fetcher, "bytes_fetched", 0))
        print(
            f"[pipeline] done: success={snapshot.success} failed={snapshot.failed} "
            f"skipped={snapshot.skipped} ({snapshot.success_rate():.1%})"
        )
        return snapshot
