"""Rate-limited, retrying page fetcher on top of crawl4ai's ``AsyncWebCrawler``."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from crawlers.naver.errors import FetchError
from crawlers.naver.headers import build_naver_headers, random_user_agent, section_referer
from crawlers.naver.urls import validate_url


def browser_config(section_id: int = 100, user_agent: Optional[str] = None) -> BrowserConfig:
    """Browser settings carrying Naver-friendly headers for one section."""
    user_agent = user_agent or random_user_agent()
    headers = build_naver_headers(user_agent, section_referer(section_id))
    return BrowserConfig(headless=True, user_agent=user_agent, headers=headers)


def create_crawler(section_id: int = 100, user_agent: Optional[str] = None) -> AsyncWebCrawler:
    return AsyncWebCrawler(config=browser_config(section_id, user_agent))


# ---------- rate limiting / retry ----------

class RateLimiter:
    """Spaces request starts at least ``1 / requests_per_second`` apart."""

    def __init__(self, requests_per_second: float):
        if requests_per_second <= 0:
            requests_per_second = 1.0
        self.interval = 1.0 / requests_per_second
        self._lock = asyncio.Lock()
        self._last: Optional[float] = None

    async def acquire(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            if self._last is not None:
                wait = self._last + self.interval - now
                if wait > 0:
                    await asyncio.sleep(wait)
                    now = loop.time()
            self._last = now


async def retry_async(
    fn: Callable[..., Any],
    *args: Any,
    max_retries: int,
    base_backoff: float,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    **kwargs: Any,
):
    """Await ``fn`` up to ``max_retries`` times with exponential backoff."""
    attempt = 0
    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:  # noqa: BLE001
            if should_retry is not None and not should_retry(e):
                raise
            attempt += 1
            if attempt >= max_retries:
                raise
            backoff = base_backoff * (2 ** (attempt - 1))
            await asyncio.sleep(backoff)


def is_retryable(error: BaseException) -> bool:
    """Crawler exceptions are transient; ``FetchError`` says so itself."""
    if isinstance(error, FetchError):
        return error.retryable
    return True


# ---------- fetcher ----------

class NaverFetcher:
    def __init__(
        self,
        crawler: Any,
        requests_per_second: float = 2.0,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        timeout: float = 30.0,
    ):
        self.crawler = crawler
        self.rate_limiter = RateLimiter(requests_per_second)
        self.max_retries = max(int(max_retries), 1)
        self.base_backoff = base_backoff
        self.timeout = timeout
        self.bytes_fetched = 0
        self.run_config = CrawlerRunConfig(
            cache_mode=CacheMode.BYPASS,
            page_timeout=int(timeout * 1000),
        )

    async def _fetch_once(self, url: str) -> str:
        await self.rate_limiter.acquire()
        try:
            result = await asyncio.wait_for(
                self.crawler.arun(url=url, config=self.run_config),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise FetchError.timeout(url)

        status = getattr(result, "status_code", None)
        if status is not None and not 200 <= int(status) < 300:
            raise FetchError.server_error(int(status))
        if not getattr(result, "success", True):
            message = getattr(result, "error_message", None) or "crawl failed"
            raise FetchError(f"Crawl failed for {url}: {message}", status=status, retryable=True)

        html = getattr(result, "html", "") or ""
        if not html:
            raise FetchError(f"Empty response from {url}", status=status)
        return html

    async def fetch(self, url: str) -> str:
        """Return the page HTML or raise ``FetchError``."""
        try:
            validate_url(url)
        except ValueError as e:
            raise FetchError.invalid_url(url, str(e))

        try:
            html = await retry_async(
                self._fetch_once,
                url,
                max_retries=self.max_retries,
                base_backoff=self.base_backoff,
                should_retry=is_retryable,
            )
        except Exception as e:  # noqa: BLE001
            if not is_retryable(e):
                raise
            raise FetchError.max_retries_exceeded(url, e) from e

        self.bytes_fetched += len(html)
        return html
