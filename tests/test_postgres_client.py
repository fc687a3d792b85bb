from datetime import datetime, timezone

import pytest

from db import postgres_client
from db.postgres_client import (
    DedupCache,
    DedupCheckResult,
    DedupChecker,
    DedupConfig,
    DedupRecord,
    upsert_article,
)


@pytest.fixture
def checker(mock_conn):
    return DedupChecker(DedupConfig(database_url="postgresql://test", instance_id="crawler-1"), lambda: mock_conn)


def test_get_conn_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(ValueError, match="DATABASE_URL"):
        postgres_client.get_conn()


def test_config_from_env(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("POSTGRES_URL", "postgresql://fallback")
    monkeypatch.setenv("DEDUP_CACHE_SIZE", "50")
    monkeypatch.setenv("CRAWLER_INSTANCE_ID", "a-very-long-instance-identifier")
    cfg = DedupConfig.from_env()
    assert cfg.database_url == "postgresql://fallback"
    assert cfg.cache_size == 50
    assert cfg.instance_id == "a-very-long-instance"


def test_upsert_article_writes_row_and_closes(mock_conn, cursor):
    doc = {
        "id": "001_0014000001",
        "site": "naver",
        "category": "it",
        "url": "https://n.news.naver.com/mnews/article/001/0014000001",
        "title": "제목",
        "lang": "ko",
        "text": "본문",
        "scraped_at": "2024-12-15T05:31:02+00:00",
        "published_at": "2024-12-15T14:30:00+09:00",
        "meta": {"publisher": "연합뉴스"},
    }
    upsert_article(doc, conn_factory=lambda: mock_conn)

    sql, params = cursor.execute.call_args.args
    assert "ON CONFLICT (url)" in sql
    assert params["article_id"] == "001_0014000001"
    assert params["content"] == "본문"
    assert params["meta"].adapted == {"publisher": "연합뉴스"}
    mock_conn.close.assert_called_once()


def test_exists_by_url_caches_hits(checker, cursor):
    cursor.fetchone.return_value = (True,)
    assert checker.exists_by_url("https://n.news.naver.com/a")
    calls = cursor.execute.call_count
    assert checker.exists_by_url("https://n.news.naver.com/a")
    assert cursor.execute.call_count == calls


def test_exists_misses_are_not_cached(checker, cursor):
    cursor.fetchone.return_value = (False,)
    assert not checker.exists_by_hash("abc")
    assert not checker.exists_by_hash("abc")
    assert cursor.execute.call_count == 2
    assert not checker.exists_by_id("001_0014000001")


def test_batch_check_urls_splits_new_and_existing(checker, cursor):
    checker.cache.insert_url("u1")
    cursor.fetchall.return_value = [("u2",)]
    result = checker.batch_check_urls(["u1", "u2", "u3"])

    assert result.existing_urls == ["u1", "u2"]
    assert result.new_urls == ["u3"]
    assert result.dedup_ratio() == pytest.approx(2 / 3)
    sql, params = cursor.execute.call_args.args
    assert "ANY(%s)" in sql
    assert params == (["u2", "u3"],)


def test_batch_check_all_cached_skips_query(checker, cursor):
    checker.cache.insert_url("u1")
    result = checker.batch_check_urls(["u1"])
    assert result.new_urls == []
    cursor.execute.assert_not_called()


def test_record_crawl_upserts_and_remembers(checker, cursor):
    record = DedupRecord(
        article_id="001_0014000001",
        url="https://n.news.naver.com/mnews/article/001/0014000001",
        content_hash="h1",
        crawled_by="crawler-1",
        crawled_at=datetime(2024, 12, 15, tzinfo=timezone.utc),
    )
    checker.record_crawl(record)
    sql, params = cursor.execute.call_args.args
    assert "ON CONFLICT (article_id)" in sql
    assert params == record.params()
    assert checker.exists_by_hash("h1")
    assert checker.exists_by_url(record.url)


def test_batch_record_crawls(checker, cursor):
    records = [DedupRecord(f"id{i}", f"u{i}", f"h{i}", "crawler-1") for i in range(3)]
    assert checker.batch_record_crawls(records) == 3
    assert len(cursor.executemany.call_args.args[1]) == 3
    assert checker.batch_record_crawls([]) == 0


def test_stats(checker, cursor):
    first = datetime(2024, 12, 1, tzinfo=timezone.utc)
    last = datetime(2024, 12, 15, tzinfo=timezone.utc)
    cursor.fetchone.return_value = (10, 8, 2, first, last)
    stats = checker.get_total_stats()
    assert (stats.total, stats.success, stats.failed) == (10, 8, 2)
    assert stats.success_rate() == 0.8
    assert stats.last_crawl == last

    checker.get_stats_by_instance("crawler-2")
    sql, params = cursor.execute.call_args.args
    assert sql.rstrip().endswith("WHERE crawled_by = %s")
    assert params == ("crawler-2",)


def test_cache_eviction_keeps_bounds():
    cache = DedupCache(max_size=4)
    for i in range(10):
        cache.insert_url(f"u{i}")
        cache.insert_hash(f"h{i}")
    assert len(cache.urls) <= 4
    assert len(cache.hashes) <= 2
    assert cache.contains_url("u9")
    cache.clear()
    assert not cache.contains_hash("h9")


def test_empty_check_result_ratio():
    assert DedupCheckResult().dedup_ratio() == 0.0
