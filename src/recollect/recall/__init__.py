"""
Recall module - ranked retrieval over stored memories.

Strategies:
- keyword: case-insensitive substring match, ordered by importance then recency
- semantic: cosine similarity against the query embedding
- hybrid: weighted fusion of both candidate sets

Falls back to keyword retrieval whenever no embedding is available.
"""
