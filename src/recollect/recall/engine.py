"""Recall engine - turns free-text queries into ranked memories."""

import asyncio
import math
from datetime import datetime
from enum import Enum
from uuid import uuid4

from recollect.core.errors import ValidationError
from recollect.core.logging import get_logger
from recollect.core.types import Memory, MemoryFilters, RecallQuery
from recollect.core.typing import Embedding, JSONDict
from recollect.embeddings.base import DISABLED, EmbeddingProvider, Unavailable
from recollect.memory.base import MemoryStore
from recollect.recall.scoring import fuse_candidates

logger = get_logger("recall.engine")

# Candidates fetched per hybrid sub-search, as a multiple of the result limit
HYBRID_CANDIDATE_FACTOR = 4


class RetrievalStrategy(Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"


def select_strategy(embedding: Embedding | Unavailable) -> RetrievalStrategy:
    """Pick the retrieval strategy from the provider's answer."""
    if isinstance(embedding, Unavailable):
        return RetrievalStrategy.KEYWORD
    return RetrievalStrategy.SEMANTIC


def _check_similarity(value: float, name: str = "min_similarity") -> None:
    if not math.isfinite(value) or not -1.0 <= value <= 1.0:
        raise ValidationError(f"{name} must be within [-1, 1], got {value}")


def _check_weight(value: float, name: str) -> None:
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"{name} must be a non-negative number, got {value}")


class RecallEngine:
    """Stateless recall orchestrator for one agent.

    Safe to share between concurrent callers: all state lives in the store.
    """

    def __init__(self, store: MemoryStore, embedder: EmbeddingProvider, agent_id: str):
        if not agent_id:
            raise ValidationError("agent_id is required")
        self.store = store
        self.embedder = embedder
        self.agent_id = agent_id

    async def _embed(self, text: str, use_embeddings: bool) -> Embedding | Unavailable:
        if not use_embeddings:
            return DISABLED
        return await self.embedder.embed(text)

    async def remember(
        self,
        content: str,
        *,
        importance: float = 0.5,
        category: str | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
        expires_at: datetime | None = None,
        metadata: JSONDict | None = None,
        use_embeddings: bool = True,
    ) -> Memory:
        """
        Store a long-term memory.

        The embedding is generated before the write, so a ProviderError
        aborts the write and nothing is stored.

        Raises:
            ValidationError: empty content or non-numeric importance
            ProviderError: configured embedding provider failed
            RetrievalFailure: store write failed
        """
        if not content or not content.strip():
            raise ValidationError("memory content must not be empty")
        if not math.isfinite(importance):
            raise ValidationError(f"importance must be a finite number, got {importance}")

        embedding = await self._embed(content, use_embeddings)
        if isinstance(embedding, Unavailable):
            logger.debug(f"Storing memory without embedding: {embedding.reason}")
            embedding = None

        now = datetime.now()
        memory = Memory(
            id=str(uuid4()),
            agent_id=self.agent_id,
            content=content,
            importance=importance,
            user_id=user_id,
            category=category,
            source_session_id=session_id,
            embedding=embedding,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
            metadata=metadata or {},
        )
        stored = await self.store.insert_memory(memory)
        logger.info(f"Remembered {stored.id} (importance={importance}, embedded={stored.has_embedding})")
        return stored

    async def recall(
        self,
        query: str,
        *,
        user_id: str | None = None,
        category: str | None = None,
        min_importance: float | None = None,
        limit: int = 10,
        min_similarity: float = 0.7,
        use_embeddings: bool = True,
    ) -> list[Memory]:
        """
        Retrieve memories relevant to a query.

        Uses semantic search when the query can be embedded, otherwise a
        case-insensitive substring match ordered by importance then recency.

        Returns:
            At most `limit` memories, best first
        """
        _check_similarity(min_similarity)
        request = RecallQuery(
            text=query,
            user_id=user_id,
            category=category,
            min_importance=min_importance,
            limit=limit,
            min_similarity=min_similarity,
        )
        if request.limit == 0:
            return []

        embedding = await self._embed(query, use_embeddings)
        return await self._recall(request, embedding)

    async def _recall(
        self, request: RecallQuery, embedding: Embedding | Unavailable
    ) -> list[Memory]:
        filters = request.filters(self.agent_id)
        strategy = select_strategy(embedding)
        logger.debug(f"Recall strategy={strategy.value} limit={request.limit}")

        if strategy is RetrievalStrategy.SEMANTIC:
            candidates = await self.store.vector_search(
                embedding, filters, request.min_similarity, request.limit
            )
        else:
            candidates = await self.store.keyword_search(request.text, filters, request.limit)

        return [c.memory for c in candidates[: request.limit]]

    async def hybrid_recall(
        self,
        query: str,
        *,
        user_id: str | None = None,
        category: str | None = None,
        min_importance: float | None = None,
        limit: int = 10,
        vector_weight: float = 0.7,
        keyword_weight: float = 0.3,
        min_similarity: float = 0.5,
        use_embeddings: bool = True,
    ) -> list[Memory]:
        """
        Retrieve memories by fusing vector and keyword relevance.

        fused = vector_weight * cosine + keyword_weight * max-scaled keyword relevance,
        with a missing sub-score counting as 0. Without an embedding this is
        exactly the keyword path of recall().
        """
        _check_similarity(min_similarity)
        _check_weight(vector_weight, "vector_weight")
        _check_weight(keyword_weight, "keyword_weight")
        request = RecallQuery(
            text=query,
            user_id=user_id,
            category=category,
            min_importance=min_importance,
            limit=limit,
            min_similarity=min_similarity,
            vector_weight=vector_weight,
            keyword_weight=keyword_weight,
        )
        if request.limit == 0:
            return []

        embedding = await self._embed(query, use_embeddings)
        if select_strategy(embedding) is RetrievalStrategy.KEYWORD:
            return await self._recall(request, embedding)

        filters = request.filters(self.agent_id)
        fetch_limit = request.limit * HYBRID_CANDIDATE_FACTOR
        vector_candidates, keyword_candidates = await asyncio.gather(
            self.store.vector_search(embedding, filters, request.min_similarity, fetch_limit),
            self.store.keyword_search(request.text, filters, fetch_limit),
        )

        fused = fuse_candidates(
            vector_candidates,
            keyword_candidates,
            request.vector_weight,
            request.keyword_weight,
        )
        logger.debug(
            f"Hybrid recall: vector={len(vector_candidates)} keyword={len(keyword_candidates)} "
            f"merged={len(fused)}"
        )
        return [c.memory for c in fused[: request.limit]]

    async def find_similar_memories(
        self,
        memory_id: str,
        *,
        limit: int = 10,
        min_similarity: float = 0.8,
    ) -> list[Memory]:
        """
        Find near-duplicates of a stored memory.

        Raises:
            NotFound: memory does not exist for this agent or has no embedding
        """
        _check_similarity(min_similarity)
        if limit <= 0:
            return []

        embedding = await self.store.get_memory_embedding(memory_id, self.agent_id)

        # One extra slot for the source memory, which always matches itself
        candidates = await self.store.vector_search(
            embedding, MemoryFilters(agent_id=self.agent_id), min_similarity, limit + 1
        )
        return [c.memory for c in candidates if c.id != memory_id][:limit]

    async def forget(self, memory_id: str) -> None:
        """Delete a memory. Succeeds if it does not exist."""
        await self.store.delete_memory(memory_id)
        logger.info(f"Forgot memory {memory_id}")
