"""
Score normalization, fusion and ranking for recall results.

Keyword normalization uses max scaling: each raw keyword relevance is divided
by the largest raw relevance in the keyword candidate set, so the best keyword
hit scores 1.0 and every other hit falls in (0, 1]. Vector scores are cosine
similarities clamped into [0, 1].
"""

import math
from datetime import datetime

from recollect.core.types import ScoredCandidate
from recollect.core.typing import Embedding


def cosine_similarity(a: Embedding, b: Embedding) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if either is zero)."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def keyword_relevance(query: str, content: str) -> float:
    """Raw keyword relevance: case-insensitive occurrences of query in content."""
    if not query:
        return 1.0
    return float(max(1, content.casefold().count(query.casefold())))


def rank_key(candidate: ScoredCandidate, score: float | None) -> tuple[float, float, datetime]:
    """Sort key (use with reverse=True): score, then importance, then recency."""
    memory = candidate.memory
    return (score or 0.0, memory.importance, memory.created_at)


def normalize_keyword_scores(candidates: list[ScoredCandidate]) -> dict[str, float]:
    """Max-scale raw keyword relevance into [0, 1], keyed by memory id."""
    raw = {c.id: c.keyword_score or 0.0 for c in candidates}
    top = max(raw.values(), default=0.0)
    if top <= 0:
        return {memory_id: 0.0 for memory_id in raw}
    return {memory_id: score / top for memory_id, score in raw.items()}


def clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, value))


def fuse_candidates(
    vector_candidates: list[ScoredCandidate],
    keyword_candidates: list[ScoredCandidate],
    vector_weight: float,
    keyword_weight: float,
) -> list[ScoredCandidate]:
    """Merge both candidate sets by memory id and compute weighted fused scores.

    A candidate missing from one set contributes 0 for that term. Returns
    candidates ranked by fused score, then importance, then recency.
    """
    keyword_norm = normalize_keyword_scores(keyword_candidates)
    merged: dict[str, ScoredCandidate] = {}

    for candidate in vector_candidates:
        merged[candidate.id] = ScoredCandidate(
            memory=candidate.memory,
            vector_score=clamp_unit(candidate.vector_score or 0.0),
        )

    for candidate in keyword_candidates:
        existing = merged.get(candidate.id)
        if existing is None:
            merged[candidate.id] = ScoredCandidate(
                memory=candidate.memory,
                keyword_score=candidate.keyword_score,
            )
        else:
            existing.keyword_score = candidate.keyword_score

    for candidate in merged.values():
        vector_term = candidate.vector_score or 0.0
        keyword_term = keyword_norm.get(candidate.id, 0.0)
        candidate.fused_score = vector_weight * vector_term + keyword_weight * keyword_term

    return rank_candidates(list(merged.values()))


def rank_candidates(candidates: list[ScoredCandidate]) -> list[ScoredCandidate]:
    """Order by fused score descending; ties by importance, then most recent."""
    return sorted(candidates, key=lambda c: rank_key(c, c.fused_score), reverse=True)
