"""Embeddings layer: convert chunks into vector embeddings.

Uses a feature-hashing vectorizer, so it needs no model download or fitting
and the same text always maps to the same vector. Korean has no reliable
whitespace word boundaries for compounds, so Hangul runs also contribute
character bigrams.
"""
import re
from functools import lru_cache
from typing import List

from sklearn.feature_extraction.text import HashingVectorizer

DEFAULT_DIMENSION = 384

_TOKEN = re.compile(r"[0-9A-Za-z]+|[가-힣]+")
_HANGUL = re.compile(r"^[가-힣]+$")


def tokenize(text: str) -> List[str]:
    tokens = []
    for token in _TOKEN.findall(text.lower()):
        tokens.append(token)
        if _HANGUL.match(token) and len(token) > 2:
            tokens.extend(token[i:i + 2] for i in range(len(token) - 1))
    return tokens


@lru_cache(maxsize=8)
def _vectorizer(dim: int) -> HashingVectorizer:
    return HashingVectorizer(
        n_features=dim,
        analyzer=tokenize,
        alternate_sign=True,
        norm="l2",
    )


def embed_texts(texts: List[str], dim: int = DEFAULT_DIMENSION) -> List[List[float]]:
    """L2-normalized hashed bag-of-tokens vectors; empty text gives zeros."""
    if dim <= 0:
        raise ValueError("dim must be positive")
    if not texts:
        return []
    matrix = _vectorizer(dim).transform([t or "" for t in texts])
    return matrix.toarray().tolist()
