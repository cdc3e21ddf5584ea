"""
Vector similarity and in-process ranking.

Used by the scan backend: candidates are fetched from the store (bounded by
the candidate ceiling) and scored here. Native backends rank in the database
and must produce the same ordering and threshold behavior.
"""

import logging
from typing import Sequence

import numpy as np

from vidrecall.schemas.search import ChunkRecord, SearchResult


logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity ``dot(a, b) / (||a|| * ||b||)``.

    A zero-magnitude vector has similarity 0 with everything.

    Raises:
        ValueError: If the vectors differ in length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    if va.shape != vb.shape:
        raise ValueError(f"Cannot compare vectors of length {va.size} and {vb.size}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def to_search_result(record: ChunkRecord, similarity: float) -> SearchResult:
    """Build a search result, folding the score into the metadata."""
    return SearchResult(
        id=record.id,
        video_id=record.video_id,
        content=record.content,
        content_type=record.content_type,
        chunk_index=record.chunk_index,
        similarity=similarity,
        metadata={**record.metadata, "similarity": similarity},
    )


def rank_by_similarity(
    query_vector: Sequence[float],
    candidates: Sequence[ChunkRecord],
    threshold: float,
    limit: int
) -> list[SearchResult]:
    """
    Score candidates against the query, best first.

    Candidates whose vector length differs from the query's are skipped,
    never compared. Results below ``threshold`` are dropped and at most
    ``limit`` are returned. Equal scores keep their candidate order.
    """
    dimension = len(query_vector)
    comparable = []
    for record in candidates:
        if len(record.vector) != dimension:
            logger.warning(
                f"Skipping chunk {record.id} (video {record.video_id}): "
                f"vector length {len(record.vector)} != query length {dimension}"
            )
            continue
        comparable.append(record)

    if not comparable:
        return []

    scored = [
        (cosine_similarity(query_vector, record.vector), record)
        for record in comparable
    ]
    scored.sort(key=lambda pair: pair[0], reverse=True)

    results = [
        to_search_result(record, similarity)
        for similarity, record in scored
        if similarity >= threshold
    ]

    logger.debug(
        f"Scored {len(scored)} candidates, {len(results)} at or above threshold {threshold}"
    )
    return results[:limit]
