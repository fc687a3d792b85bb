"""Ingestion + Postgres + vector DB pipeline for the Naver News corpus.

The crawler writes one markdown file per article, flat under its
``output_dir`` (``output/raw/<oid>_<aid>_<title>.md`` by default). The
category comes from each file's front matter. This module then:
  1. Converts each record into a structured document dict.
  2. Writes JSON docs under data/processed/naver/<category>/<id>.json.
  3. Upserts each article into the PostgreSQL ``news_articles`` table.
  4. Chunks + embeds each article and upserts the vectors into the
     Pinecone index via ``vector_db.client``.

Run from the repo root, e.g.:

    python ingestion/naver_ingest.py
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Ensure project root is on sys.path so that "preprocessing", "db", and
# "vector_db" can be imported when executed as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.postgres_client import upsert_article
from embeddings.embedder import DEFAULT_DIMENSION, embed_texts
from preprocessing.chunking import chunk_document
from preprocessing.cleaners import basic_clean, has_content
from storage.markdown import ArticleRecord, iter_records
from vector_db.client import from_config as vector_client_from_config

DEFAULT_INPUT_ROOT = "output/raw"
DEFAULT_OUTPUT_ROOT = "data/processed/naver"
DEFAULT_BATCH_SIZE = 50
DEFAULT_CHUNK_TOKENS = 256
DEFAULT_CHUNK_OVERLAP = 32

_META_KEYS = ("publisher", "author", "oid", "aid", "content_hash")


@dataclass
class IngestReport:
    documents: int = 0
    stored: int = 0
    vectors: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents": self.documents,
            "stored": self.stored,
            "vectors": self.vectors,
            "failed": [{"id": doc_id, "reason": reason} for doc_id, reason in self.failed],
        }


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def record_to_doc(record: ArticleRecord) -> Dict[str, Any]:
    crawled = record.crawled_at()
    meta = {key: record.get(key) for key in _META_KEYS if record.get(key)}
    if record.path:
        meta["source_path"] = record.path
    return {
        "id": record.id,
        "site": "naver",
        "category": record.category,
        "url": record.url,
        "title": record.title,
        "lang": "ko",
        "text": basic_clean(record.body),
        "meta": meta,
        "published_at": _iso(record.published_at()),
        "scraped_at": _iso(crawled) or datetime.now(timezone.utc).isoformat(),
    }


def iter_docs(root: str = DEFAULT_INPUT_ROOT) -> Iterable[Dict[str, Any]]:
    """Yield structured docs for every markdown record under ``root``."""
    for record in iter_records(root):
        yield record_to_doc(record)


def _vectors_for_doc(doc: Dict[str, Any], chunk_tokens: int, overlap: int, dim: int):
    base_meta = {
        "article_id": doc["id"],
        "site": doc["site"],
        "category": doc["category"],
        "url": doc["url"],
        "title": doc["title"],
        "lang": doc.get("lang") or "ko",
        "published_at": doc.get("published_at"),
    }
    chunks = chunk_document(
        {"id": doc["id"], "text": doc["text"], "meta": doc.get("meta") or {}},
        max_tokens=chunk_tokens,
        overlap=overlap,
    )
    if not chunks:
        return [], [], []

    vectors = embed_texts([c["text"] for c in chunks], dim=dim)
    ids = [c["id"] for c in chunks]
    metadatas = []
    for chunk in chunks:
        chunk_meta = dict(base_meta)
        chunk_meta.update(chunk.get("meta", {}))
        chunk_meta["text"] = chunk["text"]
        metadatas.append(chunk_meta)
    return ids, vectors, metadatas


def _batched(items: Iterable[Dict[str, Any]], size: int) -> Iterable[List[Dict[str, Any]]]:
    batch: List[Dict[str, Any]] = []
    for item in items:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def run(config: Dict[str, Any], vdb: Any = None) -> IngestReport:
    """Ingestion entrypoint for the Naver corpus.

    Config keys (all optional):
      - input_root: str (default DEFAULT_INPUT_ROOT)
      - output_root: str (default DEFAULT_OUTPUT_ROOT)
      - batch_size: int (default DEFAULT_BATCH_SIZE)
      - chunk_tokens / chunk_overlap: int
      - store_in_db: bool (default True)
      - push_to_vector_db: bool (default True)
      - vector_db: dict passed straight to ``vector_db.client.from_config``
    """
    input_root = config.get("input_root", DEFAULT_INPUT_ROOT)
    output_root = config.get("output_root", DEFAULT_OUTPUT_ROOT)
    batch_size = int(config.get("batch_size", DEFAULT_BATCH_SIZE))
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    chunk_tokens = int(config.get("chunk_tokens", DEFAULT_CHUNK_TOKENS))
    overlap = int(config.get("chunk_overlap", DEFAULT_CHUNK_OVERLAP))
    store_in_db: bool = config.get("store_in_db", True)
    push_to_vector_db: bool = config.get("push_to_vector_db", True)
    vdb_config: Dict[str, Any] = config.get("vector_db", {})
    dim = int(vdb_config.get("dimension", DEFAULT_DIMENSION))

    if push_to_vector_db and vdb is None:
        vdb = vector_client_from_config(vdb_config)

    out_base = Path(output_root)
    out_base.mkdir(parents=True, exist_ok=True)
    report = IngestReport()

    for batch_no, batch in enumerate(_batched(iter_docs(input_root), batch_size), start=1):
        ids: List[str] = []
        vectors: List[List[float]] = []
        metadatas: List[Dict[str, Any]] = []

        for doc in batch:
            report.documents += 1
            if not has_content(doc["text"]):
                report.failed.append((doc["id"], "empty content"))
                print(f"[naver_ingest] ❌ {doc['id']}: empty content")
                continue

            out_dir = out_base / doc["category"]
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / f"{doc['id']}.json").write_text(
                json.dumps(doc, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )

            if store_in_db:
                try:
                    upsert_article(doc)
                    report.stored += 1
                except Exception as e:  # noqa: BLE001
                    report.failed.append((doc["id"], f"db: {e}"))
                    print(f"[naver_ingest] ❌ {doc['id']}: db upsert failed: {e}")
                    continue

            if push_to_vector_db:
                doc_ids, doc_vectors, doc_metas = _vectors_for_doc(doc, chunk_tokens, overlap, dim)
                ids.extend(doc_ids)
                vectors.extend(doc_vectors)
                metadatas.extend(doc_metas)

        if push_to_vector_db and ids:
            try:
                report.vectors += vdb.upsert(ids, vectors, metadatas)
            except Exception as e:  # noqa: BLE001
                report.failed.append((f"batch_{batch_no}", f"vector upsert: {e}"))
                print(f"[naver_ingest] ❌ batch {batch_no}: vector upsert failed: {e}")
        print(f"[naver_ingest] batch {batch_no}: {report.documents} docs, {report.vectors} vectors so far")

    print(
        f"[naver_ingest] ✔ Done: {report.documents} docs, {report.stored} stored, "
        f"{report.vectors} vectors, {len(report.failed)} failed"
    )
    return report


if __name__ == "__main__":
    run({"vector_db": {"index_name": "naver-news", "dimension": DEFAULT_DIMENSION}})
