import pytest

from conftest import CANONICAL_URL, GENERAL_HTML, ROOT, StubFetcher, list_page_html
from crawlers import run_crawlers
from crawlers.naver import crawl
from crawlers.naver.crawl import NaverCrawlerConfig, crawl_category, crawl_single_url, load_config, log_failure
from crawlers.naver.listing import main_list_url
from crawlers.naver.models import CrawlState, NewsCategory
from storage.markdown import ArticleStorage
from storage.repository import CrawlRepository

DATE = "20241215"


def config(tmp_path, **overrides):
    cfg = NaverCrawlerConfig(
        date=DATE,
        output_dir=str(tmp_path / "raw"),
        sqlite_path=str(tmp_path / "crawl.db"),
        checkpoint_dir=str(tmp_path / "ckpt"),
        state_file=str(tmp_path / "state.json"),
        log_file=str(tmp_path / "failures.log"),
    )
    cfg.update(overrides)
    return cfg


def test_from_yaml_and_coercion(tmp_path):
    path = tmp_path / "naver.yaml"
    path.write_text(
        "categories: economy\nmax_articles: '40'\nrequests_per_second: 1\nskip_existing: 'false'\ndate: 20241215\n",
        encoding="utf-8",
    )
    cfg = NaverCrawlerConfig.from_yaml(str(path))
    assert cfg.categories == ["economy"]
    assert cfg.max_articles == 40
    assert cfg.requests_per_second == 1.0
    assert cfg.skip_existing is False
    assert cfg.date == "20241215"
    assert cfg.max_pages() == 2


def test_shipped_configs_load():
    for name in ("naver.yaml", "naver_politics.yaml"):
        cfg = load_config(str(ROOT / "configs" / name))
        assert cfg.resolved_categories()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("NAVER_RATE_LIMIT", "5")
    monkeypatch.setenv("NAVER_SQLITE_PATH", "/tmp/x.db")
    cfg = NaverCrawlerConfig()
    cfg.apply_env()
    assert cfg.requests_per_second == 5.0
    assert cfg.sqlite_path == "/tmp/x.db"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"categories": ["sports"]}, "Unknown category"),
        ({"categories": []}, "at least one category"),
        ({"date": "2024-12-15"}, "Invalid date"),
        ({"max_concurrent": 0}, "max_concurrent"),
        ({"requests_per_second": 0}, "requests_per_second"),
    ],
)
def test_validate_rejects_bad_values(overrides, message):
    cfg = NaverCrawlerConfig()
    for key, value in overrides.items():
        setattr(cfg, key, value)
    with pytest.raises(ValueError, match=message):
        cfg.validate()


def test_pipeline_config_caps_fetch_workers():
    cfg = NaverCrawlerConfig(fetch_workers=8, max_concurrent=3, max_articles=0)
    assert cfg.pipeline_config().fetch_workers == 3
    assert cfg.max_pages() == 0
    assert len(cfg.crawl_date()) == 8


def test_log_failure_appends(tmp_path):
    cfg = config(tmp_path)
    log_failure(cfg, "https://n.news.naver.com/x", "Server error: 500")
    log_failure(cfg, "politics", "No articles found")
    lines = (tmp_path / "failures.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("https://n.news.naver.com/x  |  Server error: 500")
    assert lines[0].startswith("[")


async def test_crawl_category_end_to_end(tmp_path):
    cfg = config(tmp_path, categories=["it"], max_articles=2)
    aids = ["0014000001", "0014000002", "0014000003"]
    pages = {main_list_url(NewsCategory.IT, DATE, 1): list_page_html(aids)}
    for i, aid in enumerate(aids):
        pages[f"https://n.news.naver.com/mnews/article/001/{aid}"] = GENERAL_HTML.replace(
            "업계는 이를 주목하고 있다.", f"기사 {i}"
        )
    repo = CrawlRepository.in_memory()
    # one article is already known and must not be fetched again
    repo.mark_url_crawled("001_0014000001", "https://n.news.naver.com/mnews/article/001/0014000001", "h", "success")
    state = CrawlState()

    fetcher = StubFetcher(pages)
    snapshot = await crawl_category(NewsCategory.IT, cfg, fetcher, repository=repo, state=state)

    assert snapshot.success == 2
    assert "https://n.news.naver.com/mnews/article/001/0014000001" not in fetcher.calls
    assert state.total_crawled == 2
    assert state.last_category == "it"
    assert repo.load_checkpoint("last_category") == "it"
    repo.close()


async def test_crawl_single_url(tmp_path):
    cfg = config(tmp_path)
    repo = CrawlRepository.in_memory()
    state = CrawlState()
    fetcher = StubFetcher({CANONICAL_URL: GENERAL_HTML})

    path = await crawl_single_url(CANONICAL_URL + "?sid=105", cfg, fetcher, repository=repo, state=state)
    assert path is not None and path.exists()
    assert state.is_completed("001_0014000001")
    assert repo.is_url_crawled(CANONICAL_URL)

    # the stored file is left alone when skip_existing is on
    again = await crawl_single_url(CANONICAL_URL, cfg, fetcher, repository=repo, state=state)
    assert again is None


async def test_crawl_single_url_respects_skip_existing(tmp_path):
    cfg = config(tmp_path)
    storage = ArticleStorage(cfg.output_dir)
    fetcher = StubFetcher({CANONICAL_URL: GENERAL_HTML})
    assert await crawl_single_url(CANONICAL_URL, cfg, fetcher, storage=storage) is not None
    assert await crawl_single_url(CANONICAL_URL, cfg, fetcher, storage=storage) is None


def test_run_validates_before_crawling():
    with pytest.raises(ValueError):
        crawl.run(overrides={"categories": ["nope"]})


def test_run_crawlers_dispatch(tmp_path, monkeypatch):
    sites = tmp_path / "sites.yaml"
    sites.write_text(
        "sites:\n"
        "  daily:\n    enabled: true\n    crawler_module: crawlers.naver.crawl\n    config_path: x.yaml\n"
        "  off:\n    enabled: false\n    crawler_module: crawlers.naver.crawl\n"
        "  broken:\n    enabled: true\n    crawler_module: no.such.module\n",
        encoding="utf-8",
    )
    seen = []
    monkeypatch.setattr(crawl, "run", lambda path: seen.append(path))

    outcome = run_crawlers.main(["--sites-config", str(sites)])
    assert outcome == {"daily": True, "off": False, "broken": False}
    assert seen == ["x.yaml"]

    assert run_crawlers.main(["--sites-config", str(sites), "--only", "off"]) == {"off": False}


async def test_crawl_single_url_rewrites_unchanged_article_without_skip_existing(tmp_path):
    cfg = config(tmp_path, skip_existing=False)
    repo = CrawlRepository.in_memory()
    fetcher = StubFetcher({CANONICAL_URL: GENERAL_HTML})

    first = await crawl_single_url(CANONICAL_URL, cfg, fetcher, repository=repo)
    again = await crawl_single_url(CANONICAL_URL, cfg, fetcher, repository=repo)
    assert first is not None
    assert again == first
    assert repo.get_crawl_record(CANONICAL_URL).status == "success"
    repo.close()
