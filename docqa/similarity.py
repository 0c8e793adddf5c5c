"""
Similarity Ranking Module

Ranks document chunks against a question embedding by cosine similarity.

DISTANCE METRIC:
Cosine similarity measures the angle between two vectors:
  - 1.0 = same direction
  - 0.0 = perpendicular (unrelated)
  - -1.0 = opposite direction

SEARCH ALGORITHM:
Brute force. Every chunk vector of the knowledge base is loaded for each
question and compared to the question vector, O(n * d) for n chunks of
dimension d. The result is exact and no index has to be kept in sync with
the database, at the cost of not scaling past a few tens of thousands of
chunks.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np

from docqa.errors import VectorLengthMismatchError

MIN_SIMILARITY_THRESHOLD = 0.3
TOP_K_CHUNKS = 5


@dataclass(frozen=True)
class ChunkWithEmbedding:
    """A stored chunk together with its pre-computed embedding vector."""
    id: str
    document_id: str
    document_name: str
    content: str
    chunk_index: int
    embedding: Sequence[float]


@dataclass(frozen=True)
class RankedChunk:
    """
    A chunk scored against a query.

    Carries everything from ChunkWithEmbedding except the vector itself,
    which is only needed while scoring.
    """
    id: str
    document_id: str
    document_name: str
    content: str
    chunk_index: int
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        """Source citation shape shown next to an answer."""
        return {
            "documentName": self.document_name,
            "documentId": self.document_id,
            "chunkText": self.content,
            "similarity": round(self.similarity, 2),
        }

    def __repr__(self):
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"RankedChunk(similarity={self.similarity:.4f}, text='{preview}')"


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    FORMULA:
    cosine_similarity = (A · B) / (||A|| * ||B||)

    A zero vector has no direction; its similarity to anything is 0.0.
    The result is not clamped.

    Raises:
        VectorLengthMismatchError: if the vectors differ in length

    EXAMPLE:
    [1, 0, 0] vs [1, 0, 0] -> 1.0
    [1, 0, 0] vs [0, 1, 0] -> 0.0
    """
    if len(vec1) != len(vec2):
        raise VectorLengthMismatchError(len(vec1), len(vec2))

    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)

    magnitude_a = np.linalg.norm(a)
    magnitude_b = np.linalg.norm(b)

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return float(np.dot(a, b) / (magnitude_a * magnitude_b))


def find_top_k(
    query_embedding: Sequence[float],
    candidates: Sequence[ChunkWithEmbedding],
    k: int = TOP_K_CHUNKS,
) -> List[RankedChunk]:
    """
    Find the k chunks most similar to a query.

    Args:
        query_embedding: The embedding of the user's question
        candidates: Every chunk of the knowledge base with its embedding
        k: Number of results to return

    Returns:
        Up to k RankedChunk objects, highest similarity first. Chunks with
        equal scores keep their input order.

    A candidate whose embedding length differs from the query aborts the
    whole call with VectorLengthMismatchError; no partial ranking is returned.
    """
    if k <= 0 or not candidates:
        return []

    scored = [
        RankedChunk(
            id=chunk.id,
            document_id=chunk.document_id,
            document_name=chunk.document_name,
            content=chunk.content,
            chunk_index=chunk.chunk_index,
            similarity=cosine_similarity(query_embedding, chunk.embedding),
        )
        for chunk in candidates
    ]

    # sorted() is stable, also with reverse=True
    scored = sorted(scored, key=lambda r: r.similarity, reverse=True)

    return scored[:k]


def filter_relevant(
    ranked: Sequence[RankedChunk],
    threshold: float = MIN_SIMILARITY_THRESHOLD,
) -> List[RankedChunk]:
    """Keep chunks scoring strictly above threshold, preserving order."""
    return [r for r in ranked if r.similarity > threshold]
