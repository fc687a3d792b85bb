from datetime import datetime, timezone

import yaml

from crawlers.naver.models import KST, ParsedArticle
from storage.markdown import (
    ArticleStorage,
    article_filename,
    find_record,
    iter_records,
    parse_markdown,
    read_record,
    render_article,
    sanitize_filename,
)


def make_article(aid="0014000001", title="네이버 AI 공개", content="첫 문단.\n\n둘째 문단."):
    article = ParsedArticle(
        oid="001",
        aid=aid,
        title=title,
        content=content,
        url=f"https://n.news.naver.com/mnews/article/001/{aid}",
        category="it",
        publisher="연합뉴스",
        author="홍길동 기자",
        published_at=datetime(2024, 12, 15, 14, 30, tzinfo=KST),
        crawled_at=datetime(2024, 12, 15, 5, 31, 2, tzinfo=timezone.utc),
    )
    article.compute_hash()
    return article


def test_render_article_layout():
    text = render_article(make_article())
    assert text.startswith("---\n")
    header, body = text[4:].split("---\n", 1)
    meta = yaml.safe_load(header)
    assert list(meta)[:3] == ["id", "title", "category"]
    assert meta["id"] == "001_0014000001"
    assert meta["published_at"] == "2024-12-15 14:30"
    assert meta["crawled_at"] == "2024-12-15 05:31:02"
    assert meta["publisher"] == "연합뉴스"
    assert meta["oid"] == "001"
    assert body == "\n# 네이버 AI 공개\n\n첫 문단.\n\n둘째 문단.\n"


def test_render_quotes_titles_with_yaml_syntax():
    article = make_article(title='속보: "대통령" 발표 #1')
    record = parse_markdown(render_article(article))
    assert record.title == '속보: "대통령" 발표 #1'


def test_filenames():
    assert sanitize_filename("Hello, World! 안녕") == "hello_world_안녕"
    assert len(sanitize_filename("가" * 80)) == 50
    assert article_filename(make_article()) == "001_0014000001_네이버_ai_공개.md"
    assert article_filename(make_article(title="!!!")) == "001_0014000001.md"


def test_parse_markdown_reads_back_rendered_article():
    article = make_article()
    record = parse_markdown(render_article(article), "out/001_0014000001_x.md")
    assert record.id == "001_0014000001"
    assert record.category == "it"
    assert record.body == article.content
    assert record.published_at() == article.published_at
    assert record.crawled_at() == article.crawled_at
    assert record.get("content_hash") == article.content_hash


def test_parse_markdown_recovers_ids_from_filename():
    text = "---\ntitle: 제목\noid: 1\naid: 14000001\n---\n\n# 제목\n\n본문"
    record = parse_markdown(text, "raw/023_0003800001_제목.md")
    assert (record.oid, record.aid) == ("023", "0003800001")
    assert record.id == "023_0003800001"


def test_parse_markdown_keeps_unquoted_zero_padded_ids():
    text = (
        "---\nid: 001_0014000001\ntitle: 테스트 기사\ncategory: it\noid: 001\naid: 0014000001\n"
        "published_at: 2024-12-15 14:30\n---\n\n# 테스트 기사\n\n본문"
    )
    record = parse_markdown(text, "out/001_0014000001_테스트_기사.md")
    assert record.id == "001_0014000001"
    assert (record.oid, record.aid) == ("001", "0014000001")
    assert record.published_at() == datetime(2024, 12, 15, 14, 30, tzinfo=KST)


def test_parse_markdown_rederives_mangled_id():
    text = "---\nid: 1076887553\ntitle: 제목\n---\n\n본문"
    record = parse_markdown(text, "out/001_0014000001_제목.md")
    assert record.id == "001_0014000001"


def test_parse_markdown_malformed_header_falls_back_to_lines():
    text = "---\ntitle: [unclosed\ncategory: world\n---\n\n# 헤딩 제목\n\n본문"
    record = parse_markdown(text, "x/notes.md")
    assert record.category == "world"
    assert record.title == "[unclosed"
    assert (record.oid, record.aid) == ("000", "notes")


def test_parse_markdown_without_header_uses_heading():
    record = parse_markdown("# 제목만\n\n본문")
    assert record.title == "제목만"
    assert record.body == "본문"
    assert record.category == "general"


def test_storage_skips_existing(tmp_path):
    storage = ArticleStorage(tmp_path / "raw")
    article = make_article()
    path = storage.save(article)
    assert path is not None and path.exists()
    assert storage.exists(article)
    assert storage.save(article) is None

    result = storage.save_batch([article, make_article(aid="0014000002", title="둘째")])
    assert result.skipped == ["001_0014000001"]
    assert len(result.saved) == 1
    assert result.success_rate() == 0.5


def test_storage_overwrites_when_not_skipping(tmp_path):
    storage = ArticleStorage(tmp_path, skip_existing=False)
    storage.save(make_article(content="old"))
    path = storage.save(make_article(content="new"))
    assert read_record(path).body == "new"


def test_iter_and_find_records(tmp_path):
    storage = ArticleStorage(tmp_path / "it")
    storage.save(make_article())
    storage.save(make_article(aid="0014000002", title="둘째"))
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    ids = [r.id for r in iter_records(tmp_path)]
    assert ids == ["001_0014000001", "001_0014000002"]
    assert find_record(tmp_path, "001_0014000002").title == "둘째"
    assert find_record(tmp_path, "001_0014000009") is None
    assert list(iter_records(tmp_path / "missing")) == []
