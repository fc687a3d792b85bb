"""API layer exposing search, crawl stats and stored articles."""
import os
import re
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from retrieval.retriever import Retriever
from storage.markdown import find_record
from storage.repository import CrawlRepository, RepositoryStats
from vector_db.client import config_from_env

load_dotenv()

app = FastAPI(title="Naver News Search")

_ARTICLE_ID = re.compile(r"^[0-9A-Za-z_-]+$")


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1)
    top_k: int = Field(5, gt=0, le=100)
    min_score: Optional[float] = None


class QueryResponse(BaseModel):
    query: str
    results: List[Dict[str, Any]]


@lru_cache(maxsize=1)
def get_retriever() -> Retriever:
    return Retriever({"vector_db": config_from_env(), "top_k_default": 5})


def get_database_path() -> str:
    return os.getenv("NAVER_SQLITE_PATH", "output/crawl.db")


def get_repository(path: str = Depends(get_database_path)) -> Iterator[Optional[CrawlRepository]]:
    # nothing crawled yet; do not create an empty database on a read
    if not os.path.exists(path):
        yield None
        return
    repository = CrawlRepository(path)
    try:
        yield repository
    finally:
        repository.close()


def get_corpus_dir() -> str:
    return os.getenv("NAVER_OUTPUT_DIR", "output/raw")


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/query", response_model=QueryResponse)
def query(req: QueryRequest, retriever: Retriever = Depends(get_retriever)) -> QueryResponse:
    if not req.query.strip():
        raise HTTPException(status_code=422, detail="query must not be blank")
    results = retriever.query(req.query, top_k=req.top_k, min_score=req.min_score)
    return QueryResponse(query=req.query, results=results)


@app.get("/stats")
def stats(repository: Optional[CrawlRepository] = Depends(get_repository)) -> Dict[str, Any]:
    if repository is None:
        return RepositoryStats().to_dict()
    return repository.get_stats().to_dict()


@app.get("/articles/{article_id}")
def article(article_id: str, corpus_dir: str = Depends(get_corpus_dir)) -> Dict[str, Any]:
    record = find_record(corpus_dir, article_id) if _ARTICLE_ID.match(article_id) else None
    if record is None:
        raise HTTPException(status_code=404, detail=f"article {article_id} not found")
    return record.to_dict()


if __name__ == "__main__":
    print("Local url: http://127.0.0.1:8000")
    uvicorn.run(app=app, host="0.0.0.0", port=8000, reload=False)
