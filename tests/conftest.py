"""Shared fixtures: sample Naver pages and a stub crawl4ai crawler."""
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

ARTICLE_URL = "https://n.news.naver.com/mnews/article/001/0014000001?sid=105"
CANONICAL_URL = "https://n.news.naver.com/mnews/article/001/0014000001"

GENERAL_HTML = """
<html>
<head><title>네이버 차세대 옴니모달 AI 공개 : 네이버 뉴스</title></head>
<body>
  <div class="media_end_head_top_logo"><img alt="연합뉴스" src="logo.png"></div>
  <h2 id="title_area"><span>네이버 차세대 옴니모달 AI 공개, 수능 전과목 1등급</span></h2>
  <span class="media_end_head_info_datestamp_time _ARTICLE_DATE_TIME"
        data-date-time="2024-12-15 14:30:00">2024.12.15. 오후 2:30</span>
  <em class="media_end_head_journalist_name"></em>
  <span class="byline_s">홍길동 기자</span>
  <article id="dic_area">
    네이버가 차세대 옴니모달 AI를 공개했다.<br>
    <em class="img_desc">사진 설명 캡션</em>
    새 모델은 수능 전과목에서 1등급을 받았다.<br><br>
    <script>var tracking = 1;</script>
    업계는 이를 주목하고 있다.
  </article>
</body>
</html>
"""

ENTERTAINMENT_HTML = """
<html><head><title>연예 뉴스</title></head>
<body>
  <h2 class="end_tit">배우 김철수, 새 드라마 주연 확정</h2>
  <div class="article_body">김철수가 새 드라마의 주연으로 확정됐다.</div>
  <span class="press_name">스포츠조선</span>
</body></html>
"""

SPORTS_HTML = """
<html><head><title>스포츠 뉴스</title></head>
<body>
  <div class="news_headline"><h4 class="title">손흥민 시즌 10호골</h4></div>
  <div class="news_end">손흥민이 시즌 10호골을 터뜨렸다.</div>
</body></html>
"""

CARD_HTML = """
<html><head><title>카드 뉴스</title></head>
<body>
  <h3 class="tit_view">한눈에 보는 연말정산</h3>
  <div class="card_area"></div>
  <figcaption>첫 번째 카드: 공제 항목</figcaption>
  <figcaption>두 번째 카드: 제출 서류</figcaption>
</body></html>
"""

DELETED_HTML = """
<html><head><title>페이지를 찾을 수 없습니다</title></head>
<body><div class="error_content">페이지를 찾을 수 없습니다</div></body></html>
"""


def list_page_html(aids, next_page=None):
    links = "\n".join(
        f'<a href="https://n.news.naver.com/mnews/article/001/{aid}?sid=100">기사</a>'
        for aid in aids
    )
    paging = f'<a href="?page={next_page}">{next_page}</a>' if next_page else ""
    return f"<html><body><ul>{links}</ul><div class='paging'>{paging}</div></body></html>"


class StubCrawler:
    """Stands in for ``AsyncWebCrawler``; answers ``arun`` from a url -> html map."""

    def __init__(self, pages=None, status_code=200, failures=None):
        self.pages = pages or {}
        self.status_code = status_code
        # url -> list of results to return before the page itself
        self.failures = failures or {}
        self.calls = []

    async def arun(self, url, config=None):
        self.calls.append(url)
        queued = self.failures.get(url)
        if queued:
            return queued.pop(0)
        html = self.pages.get(url)
        if html is None:
            return SimpleNamespace(html="", status_code=404, success=False, error_message="not found")
        return SimpleNamespace(html=html, status_code=self.status_code, success=True, error_message=None)


def crawl_result(html="", status_code=200, success=True, error_message=None):
    return SimpleNamespace(html=html, status_code=status_code, success=success, error_message=error_message)


class StubFetcher:
    """Fetcher double: returns HTML from a map, raises for unknown URLs."""

    def __init__(self, pages):
        self.pages = pages
        self.bytes_fetched = 0
        self.calls = []

    async def fetch(self, url):
        from crawlers.naver.errors import FetchError

        self.calls.append(url)
        html = self.pages.get(url)
        if html is None:
            raise FetchError.server_error(404)
        self.bytes_fetched += len(html)
        return html


@pytest.fixture
def article_url():
    return ARTICLE_URL


@pytest.fixture
def general_html():
    return GENERAL_HTML


@pytest.fixture
def deleted_html():
    return DELETED_HTML


@pytest.fixture
def stub_crawler():
    return StubCrawler({CANONICAL_URL: GENERAL_HTML, ARTICLE_URL: GENERAL_HTML})


@pytest.fixture
def mock_conn():
    """psycopg2-style connection whose cursor is ``conn.cursor.return_value.__enter__.return_value``."""
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.fetchone.return_value = (False,)
    cursor.fetchall.return_value = []
    return conn


@pytest.fixture
def cursor(mock_conn):
    return mock_conn.cursor.return_value.__enter__.return_value
