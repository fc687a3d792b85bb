"""Retrieval layer: semantic search over the indexed article chunks.

Queries are embedded with ``embeddings.embedder.embed_texts`` so they land in
the same space as the ingested chunks.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pinecone import Pinecone

from embeddings.embedder import DEFAULT_DIMENSION, embed_texts
from vector_db.client import DEFAULT_INDEX_NAME, resolve_api_key


class Retriever:
    def __init__(self, config: Dict[str, Any], index: Any = None):
        """Create a retriever bound to a Pinecone index.

        Expected config structure (minimal):

            {
              "vector_db": {
                "api_key": "...",           # optional, else PINECONE_API_KEY
                "index_name": "naver-news",
                "dimension": 384
              },
              "top_k_default": 5
            }
        """
        self.config = config
        vdb_conf: Dict[str, Any] = config.get("vector_db", {})
        self.dimension = int(vdb_conf.get("dimension", DEFAULT_DIMENSION))
        self._top_k_default: int = int(config.get("top_k_default", 5))

        if index is None:
            api_key = resolve_api_key(vdb_conf)
            if not api_key:
                raise ValueError("Pinecone API key is required; set PINECONE_API_KEY.")
            index = Pinecone(api_key=api_key).Index(vdb_conf.get("index_name", DEFAULT_INDEX_NAME))
        self._index = index

    def query(
        self,
        query_text: str,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Return up to ``top_k`` matching chunks, best first."""
        if not query_text or not query_text.strip():
            raise ValueError("query text must not be empty")
        if top_k is None:
            top_k = self._top_k_default
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        query_vec = embed_texts([query_text], dim=self.dimension)[0]
        result = self._index.query(vector=query_vec, top_k=top_k, include_metadata=True)

        contexts: List[Dict[str, Any]] = []
        for match in result.matches or []:
            if min_score is not None and match.score < min_score:
                continue
            contexts.append(
                {
                    "id": match.id,
                    "score": match.score,
                    "metadata": match.metadata or {},
                }
            )
        contexts.sort(key=lambda c: c["score"], reverse=True)
        return contexts


def from_config(config: Dict[str, Any]) -> Retriever:
    return Retriever(config)
