"""Naver News list pages: URL builders and paginated article URL collection."""
from __future__ import annotations

from typing import List, Set, Tuple

from crawlers.naver.errors import CrawlerError
from crawlers.naver.models import NewsCategory
from crawlers.naver.urls import extract_urls


def main_list_url(category: NewsCategory, date: str, page: int) -> str:
    return (
        "https://news.naver.com/main/list.naver?mode=LSD&mid=shm"
        f"&sid1={category.section_id}&date={date}&page={page}"
    )


def ranking_list_url(category: NewsCategory, page: int) -> str:
    return (
        "https://news.naver.com/main/ranking/popularDay.naver?mid=etc"
        f"&sid1={category.section_id}&page={page}"
    )


def section_latest_url(category: NewsCategory) -> str:
    return f"https://news.naver.com/section/{category.section_id}"


def is_valid_date(date: str) -> bool:
    """YYYYMMDD with a plausible year, month and day."""
    if not isinstance(date, str) or len(date) != 8 or not date.isdigit():
        return False
    year, month, day = int(date[:4]), int(date[4:6]), int(date[6:])
    return 2000 <= year <= 2100 and 1 <= month <= 12 and 1 <= day <= 31


def has_next_page(html: str, page: int) -> bool:
    if f"page={page + 1}" in html:
        return True
    if "다음</a>" in html or 'class="next"' in html:
        return True
    # a page that still lists articles may have a successor
    return bool(extract_urls(html))


class NewsListCrawler:
    def __init__(self, fetcher):
        self.fetcher = fetcher

    async def fetch_list_page(self, category: NewsCategory, date: str, page: int) -> Tuple[List[str], bool]:
        html = await self.fetcher.fetch(main_list_url(category, date, page))
        return extract_urls(html), has_next_page(html, page)

    async def collect_urls(self, category: NewsCategory, date: str, max_pages: int = 10) -> List[str]:
        """Walk list pages from 1 and return the sorted set of article URLs.

        ``max_pages`` of 0 means no limit; pagination also stops at the first
        empty page or when no next page is advertised.
        """
        if not is_valid_date(date):
            raise CrawlerError(f"Invalid date format: {date}. Expected YYYYMMDD")

        found: Set[str] = set()
        page = 1
        while max_pages <= 0 or page <= max_pages:
            urls, has_more = await self.fetch_list_page(category, date, page)
            if not urls:
                break
            found.update(urls)
            print(f"[naver] {category.slug} {date} page {page}: {len(urls)} urls (total {len(found)})")
            if not has_more:
                break
            page += 1

        if not found:
            raise CrawlerError(f"No articles found for {category.slug} on {date}")
        return sorted(found)
