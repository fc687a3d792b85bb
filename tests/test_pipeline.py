from unittest.mock import MagicMock

import pytest

from conftest import GENERAL_HTML, StubFetcher
from crawlers.naver.pipeline import FAILED, SKIPPED, SUCCESS, CrawlerPipeline, PipelineConfig
from storage.checkpoint import CheckpointManager, SessionTracker
from storage.markdown import ArticleStorage, iter_records
from storage.repository import CrawlRepository


def url(aid):
    return f"https://n.news.naver.com/mnews/article/001/{aid}"


def page(body):
    return GENERAL_HTML.replace("업계는 이를 주목하고 있다.", body)


@pytest.fixture
def repo():
    repository = CrawlRepository.in_memory()
    yield repository
    repository.close()


def make_pipeline(tmp_path, pages, skip_existing=True, **kwargs):
    config = PipelineConfig(fetch_workers=2, parse_workers=2, store_workers=1, queue_size=4,
                            output_dir=str(tmp_path))
    storage = ArticleStorage(tmp_path, skip_existing=skip_existing)
    return CrawlerPipeline(config, StubFetcher(pages), storage=storage, **kwargs)


async def test_every_url_ends_in_exactly_one_result(tmp_path, repo):
    pages = {
        url("0014000001"): page("첫 기사"),
        url("0014000002"): page("둘째 기사"),
        url("0014000003"): page("첫 기사"),            # same body as the first
        url("0014000004"): "<html><head><title>삭제된 기사</title></head></html>",
    }
    failures = []
    pipeline = make_pipeline(tmp_path, pages, repository=repo, on_failure=lambda u, e: failures.append(u))
    urls = list(pages) + [url("0014000005")]    # last one is not served

    snapshot = await pipeline.run(urls)

    assert snapshot.total_jobs == 5
    assert snapshot.completed() == 5
    assert (snapshot.success, snapshot.skipped, snapshot.failed) == (2, 1, 2)
    assert sorted(r.url for r in pipeline.stats.results) == sorted(urls)
    assert sorted(failures) == [url("0014000004"), url("0014000005")]
    assert snapshot.bytes_fetched > 0


async def test_results_are_persisted(tmp_path, repo):
    pages = {url("0014000001"): page("하나"), url("0014000002"): page("둘")}
    pipeline = make_pipeline(tmp_path, pages, repository=repo)
    await pipeline.run(list(pages))

    assert sorted(r.id for r in iter_records(tmp_path)) == ["001_0014000001", "001_0014000002"]
    assert repo.get_stats().success == 2
    assert all(r.status == SUCCESS and r.path.exists() for r in pipeline.stats.results)


async def test_duplicate_of_earlier_run_is_skipped(tmp_path, repo):
    pages = {url("0014000001"): page("같은 본문")}
    await make_pipeline(tmp_path / "a", pages, repository=repo).run(list(pages))

    again = {url("0014000002"): page("같은 본문")}
    pipeline = make_pipeline(tmp_path / "b", again, repository=repo)
    snapshot = await pipeline.run(list(again))
    assert snapshot.skipped == 1
    assert pipeline.stats.results[0].error == "duplicate content"


async def test_existing_file_is_skipped(tmp_path):
    pages = {url("0014000001"): page("본문")}
    await make_pipeline(tmp_path, pages).run(list(pages))
    pipeline = make_pipeline(tmp_path, pages)
    snapshot = await pipeline.run(list(pages))
    assert snapshot.skipped == 1
    assert pipeline.stats.results[0].status == SKIPPED


async def test_tracker_and_dedup_are_updated(tmp_path):
    pages = {url("0014000001"): page("본문")}
    tracker = SessionTracker(CheckpointManager(tmp_path / "ckpt"))
    session = tracker.init_session("it", list(pages) + [url("0014000002")])
    dedup = MagicMock()
    dedup.exists_by_hash.return_value = False
    dedup.config.instance_id = "crawler-1"

    pipeline = make_pipeline(tmp_path / "raw", pages, tracker=tracker, dedup=dedup)
    await pipeline.run(list(pages) + [url("0014000002")])

    assert session.processed_urls == {url("0014000001")}
    assert [f.url for f in session.failed_urls] == [url("0014000002")]
    record = dedup.record_crawl.call_args.args[0]
    assert record.article_id == "001_0014000001"
    assert record.crawled_by == "crawler-1"


async def test_dedup_hit_skips_article(tmp_path):
    dedup = MagicMock()
    dedup.exists_by_hash.return_value = True
    pages = {url("0014000001"): page("본문")}
    pipeline = make_pipeline(tmp_path, pages, dedup=dedup)
    snapshot = await pipeline.run(list(pages))
    assert snapshot.skipped == 1
    dedup.record_crawl.assert_not_called()


async def test_empty_run(tmp_path):
    snapshot = await make_pipeline(tmp_path, {}).run([])
    assert snapshot.completed() == 0
    assert snapshot.success_rate() == 1.0


def test_worker_counts_must_be_positive(tmp_path):
    with pytest.raises(ValueError):
        CrawlerPipeline(PipelineConfig(parse_workers=0, output_dir=str(tmp_path)), StubFetcher({}))


def test_status_constants():
    assert (SUCCESS, FAILED, SKIPPED) == ("success", "failed", "skipped")


async def test_recrawl_without_skip_existing_rewrites_article(tmp_path, repo):
    pages = {url("0014000001"): page("바뀌지 않은 본문")}
    await make_pipeline(tmp_path, pages, repository=repo).run(list(pages))

    pipeline = make_pipeline(tmp_path, pages, skip_existing=False, repository=repo)
    snapshot = await pipeline.run(list(pages))
    assert (snapshot.success, snapshot.skipped) == (1, 0)
    assert pipeline.stats.results[0].status == SUCCESS


class LockedRepository:
    """Repository whose writes fail, as a locked SQLite file would."""

    def __init__(self):
        self.inner = CrawlRepository.in_memory()

    def is_content_duplicate(self, content_hash, url=None):
        return self.inner.is_content_duplicate(content_hash, url)

    def record_success(self, article):
        raise OSError("database is locked")

    record_failure = record_success
    record_skipped = record_success


async def test_bookkeeping_errors_do_not_double_report(tmp_path):
    pages = {url("0014000001"): page("본문")}
    failures = []
    pipeline = make_pipeline(
        tmp_path,
        pages,
        repository=LockedRepository(),
        on_failure=lambda u, e: failures.append(u),
    )
    urls = list(pages) + [url("0014000002")]

    snapshot = await pipeline.run(urls)

    assert (snapshot.success, snapshot.failed, snapshot.skipped) == (1, 1, 0)
    assert snapshot.completed() == 2
    assert [(r.url, r.status) for r in sorted(pipeline.stats.results, key=lambda r: r.url)] == [
        (url("0014000001"), SUCCESS),
        (url("0014000002"), FAILED),
    ]
    assert failures == [url("0014000002")]


async def test_failing_failure_callback_keeps_workers_alive(tmp_path):
    def broken(url, error):
        raise RuntimeError("log disk full")

    urls = [url(f"00140000{i:02d}") for i in range(1, 7)]
    pipeline = make_pipeline(tmp_path, {}, on_failure=broken)
    snapshot = await pipeline.run(urls)
    assert snapshot.failed == 6
    assert snapshot.completed() == 6
