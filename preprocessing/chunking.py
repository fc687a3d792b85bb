"""Document chunking utilities."""
from typing import Any, Dict, List


def simple_chunk(text: str, max_tokens: int = 256, overlap: int = 0) -> List[str]:
    """Chunk by whitespace words; ``max_tokens`` counts words.

    ``overlap`` words from the end of each chunk are repeated at the start of
    the next one.
    """
    if max_tokens <= 0:
        raise ValueError("max_tokens must be positive")
    overlap = max(0, min(overlap, max_tokens - 1))
    words = text.split()
    chunks = []
    step = max_tokens - overlap
    for i in range(0, len(words), step):
        chunks.append(" ".join(words[i : i + max_tokens]))
        if i + max_tokens >= len(words):
            break
    return chunks


def chunk_document(doc: Dict[str, Any], max_tokens: int = 256, overlap: int = 0) -> List[Dict[str, Any]]:
    chunks = simple_chunk(doc["text"], max_tokens=max_tokens, overlap=overlap)
    return [
        {
            "id": f"{doc['id']}::chunk_{i}",
            "text": chunk,
            "meta": {**doc.get("meta", {}), "chunk_index": i, "chunk_count": len(chunks)},
        }
        for i, chunk in enumerate(chunks)
    ]
