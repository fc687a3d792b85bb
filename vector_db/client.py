"""Pinecone-backed vector store for article chunks.

Configuration (via dict passed to ``from_config``):
  - api_key: Optional[str] (default: environment variable ``PINECONE_API_KEY``)
  - index_name: str (default: "naver-news")
  - dimension: int  -- required when creating a new index
  - metric: str (default: "cosine")
  - cloud: str (default: "aws")
  - region: str (default: "us-east-1")
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pinecone import Pinecone, ServerlessSpec

load_dotenv()

DEFAULT_INDEX_NAME = "naver-news"
UPSERT_BATCH = 100


def config_from_env(dimension: int = 384) -> Dict[str, Any]:
    """Index settings from PINECONE_INDEX_NAME, PINECONE_CLOUD and PINECONE_ENVIRONMENT."""
    return {
        "index_name": os.getenv("PINECONE_INDEX_NAME", DEFAULT_INDEX_NAME),
        "dimension": dimension,
        "metric": "cosine",
        "cloud": os.getenv("PINECONE_CLOUD", "aws"),
        "region": os.getenv("PINECONE_ENVIRONMENT", "us-east-1"),
    }


def resolve_api_key(config: Dict[str, Any]) -> Optional[str]:
    return config.get("api_key") or os.getenv("PINECONE_API_KEY")


def sanitize_metadata(meta: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only values Pinecone accepts: str, number, bool, list of str.

    ``None`` is dropped; anything else is stringified.
    """
    clean: Dict[str, Any] = {}
    for key, value in meta.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            clean[key] = value
        elif isinstance(value, (list, tuple)):
            clean[key] = [str(v) for v in value if v is not None]
        else:
            clean[key] = str(value)
    return clean


class VectorDBClient:
    """Thin wrapper around a Pinecone index.

    Construction makes sure the configured index exists, creating it if
    necessary. Pass ``pinecone_client`` to bind an already-built client.
    """

    def __init__(self, config: Dict[str, Any], pinecone_client: Any = None):
        if pinecone_client is None:
            api_key = resolve_api_key(config)
            if not api_key:
                raise ValueError(
                    "Pinecone API key is required; set PINECONE_API_KEY env var or "
                    "provide config['api_key']."
                )
            pinecone_client = Pinecone(api_key=api_key)
        self._pc = pinecone_client

        self.index_name: str = config.get("index_name", DEFAULT_INDEX_NAME)
        metric: str = config.get("metric", "cosine")
        cloud: str = config.get("cloud", "aws")
        region: str = config.get("region", "us-east-1")

        existing = {idx.name for idx in self._pc.list_indexes()}
        if self.index_name not in existing:
            dimension = config.get("dimension")
            if not isinstance(dimension, int) or dimension <= 0:
                raise ValueError(
                    "config['dimension'] (positive int) is required to create a new "
                    "Pinecone index."
                )
            print(f"[vector_db] Creating index {self.index_name} (dim={dimension}, {metric})")
            self._pc.create_index(
                name=self.index_name,
                dimension=dimension,
                metric=metric,
                spec=ServerlessSpec(cloud=cloud, region=region),
            )

        self._index = self._pc.Index(self.index_name)

    def upsert(
        self,
        ids: List[str],
        vectors: List[List[float]],
        metadatas: List[Dict[str, Any]],
    ) -> int:
        """Upsert vectors in batches; returns how many were sent.

        ``ids``, ``vectors``, and ``metadatas`` must be the same length.
        """
        if not (len(ids) == len(vectors) == len(metadatas)):
            raise ValueError("ids, vectors, and metadatas must have the same length")

        items = [
            {"id": _id, "values": vec, "metadata": sanitize_metadata(meta)}
            for _id, vec, meta in zip(ids, vectors, metadatas)
        ]
        for start in range(0, len(items), UPSERT_BATCH):
            self._index.upsert(vectors=items[start : start + UPSERT_BATCH])
        return len(items)


def from_config(config: Dict[str, Any]) -> VectorDBClient:
    """Factory used by the rest of the codebase."""
    return VectorDBClient(config)
