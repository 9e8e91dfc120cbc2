"""
Memory store interface.
"""

from abc import ABC, abstractmethod

from recollect.core.types import Memory, MemoryFilters, Message, ScoredCandidate, Session
from recollect.core.typing import Embedding


class MemoryStore(ABC):
    """Abstract memory storage interface.

    Retrieval operations raise RetrievalFailure on store-layer I/O errors.
    """

    @abstractmethod
    async def insert_memory(self, memory: Memory) -> Memory:
        """Persist a memory, return the stored record."""
        ...

    @abstractmethod
    async def delete_memory(self, memory_id: str) -> None:
        """Delete memory. No-op if it does not exist."""
        ...

    @abstractmethod
    async def get_memory(self, memory_id: str) -> Memory | None:
        """Get specific memory by ID."""
        ...

    @abstractmethod
    async def get_memory_embedding(self, memory_id: str, agent_id: str) -> Embedding:
        """Get the stored embedding of one of an agent's memories.

        Raises:
            NotFound: memory does not exist for this agent or has no embedding
        """
        ...

    @abstractmethod
    async def vector_search(
        self,
        query_vector: Embedding,
        filters: MemoryFilters,
        min_similarity: float,
        limit: int,
    ) -> list[ScoredCandidate]:
        """Memories with cosine similarity >= min_similarity, most similar first."""
        ...

    @abstractmethod
    async def keyword_search(
        self,
        query_text: str,
        filters: MemoryFilters,
        limit: int,
    ) -> list[ScoredCandidate]:
        """Memories whose content contains the query text (case-insensitive).

        Ordered by importance then recency; keyword_score holds raw relevance.
        """
        ...

    @abstractmethod
    async def get_memories(
        self,
        filters: MemoryFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Memory]:
        """List memories, newest first."""
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        """Get session by ID."""
        ...

    @abstractmethod
    async def get_recent_messages(self, session_id: str, limit: int) -> list[Message]:
        """Most recent messages of a session, returned oldest first."""
        ...
