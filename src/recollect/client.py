"""
AgentMemory - memory facade for the agent integration layer.

Bundles one store, embedding provider, recall engine and context assembler
for a single agent. Every operation is scoped to the agent_id given at
construction time.
"""

from datetime import datetime
from types import TracebackType
from uuid import uuid4

from recollect.context.assembler import ContextAssembler
from recollect.core.config import Settings
from recollect.core.logging import get_logger
from recollect.core.types import (
    ContextPayload,
    Learning,
    LearningCategory,
    Memory,
    MemoryFilters,
    Message,
    MessageRole,
    Session,
    Severity,
    Task,
    TaskStatus,
)
from recollect.core.typing import JSONDict
from recollect.embeddings.base import EmbeddingProvider
from recollect.embeddings.litellm_provider import create_embedding_provider
from recollect.memory.store import SQLiteMemoryStore
from recollect.recall.engine import RecallEngine

logger = get_logger("client")


class AgentMemory:
    """Durable memory for one agent."""

    def __init__(
        self,
        store: SQLiteMemoryStore,
        embedder: EmbeddingProvider,
        agent_id: str,
        settings: Settings | None = None,
    ):
        self.store = store
        self.agent_id = agent_id
        self.settings = settings or Settings(agent_id=agent_id, _env_file=None)
        self.engine = RecallEngine(store, embedder, agent_id)
        self.assembler = ContextAssembler(self.engine, store)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentMemory":
        """Create from configuration (store at settings.db_path)."""
        return cls(
            store=SQLiteMemoryStore(settings.db_path),
            embedder=create_embedding_provider(settings),
            agent_id=settings.agent_id,
            settings=settings,
        )

    async def connect(self) -> None:
        await self.store.connect()

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> "AgentMemory":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # Sessions

    async def start_session(
        self,
        user_id: str | None = None,
        channel: str | None = None,
        metadata: JSONDict | None = None,
    ) -> Session:
        """Start a new conversation session."""
        return await self.store.create_session(self.agent_id, user_id, channel, metadata)

    async def end_session(self, session_id: str, summary: str | None = None) -> Session:
        """End a session with optional summary."""
        return await self.store.end_session(session_id, summary)

    async def get_session(self, session_id: str) -> Session | None:
        return await self.store.get_session(session_id)

    async def get_recent_sessions(
        self, user_id: str | None = None, limit: int = 10
    ) -> list[Session]:
        return await self.store.get_recent_sessions(self.agent_id, user_id, limit)

    # Messages

    async def add_message(
        self,
        session_id: str,
        role: MessageRole | str,
        content: str,
        token_count: int | None = None,
        metadata: JSONDict | None = None,
    ) -> Message:
        """Add a message to a session."""
        return await self.store.add_message(
            session_id, MessageRole(role), content, token_count, metadata
        )

    async def get_messages(
        self, session_id: str, limit: int = 100, offset: int = 0
    ) -> list[Message]:
        """Get messages from a session, oldest first."""
        return await self.store.get_messages(session_id, limit, offset)

    # Memories

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
    ) -> Memory:
        """Store a long-term memory."""
        return await self.engine.remember(
            content,
            importance=importance,
            category=category,
            user_id=user_id,
            session_id=session_id,
            expires_at=expires_at,
            metadata=metadata,
        )

    async def recall(
        self,
        query: str,
        *,
        user_id: str | None = None,
        category: str | None = None,
        min_importance: float | None = None,
        limit: int | None = None,
        min_similarity: float | None = None,
    ) -> list[Memory]:
        """Search memories (semantic when embeddings are configured)."""
        return await self.engine.recall(
            query,
            user_id=user_id,
            category=category,
            min_importance=min_importance,
            limit=self.settings.recall_limit if limit is None else limit,
            min_similarity=(
                self.settings.min_similarity if min_similarity is None else min_similarity
            ),
        )

    async def hybrid_recall(
        self,
        query: str,
        *,
        user_id: str | None = None,
        category: str | None = None,
        min_importance: float | None = None,
        limit: int | None = None,
        vector_weight: float | None = None,
        keyword_weight: float | None = None,
    ) -> list[Memory]:
        """Search memories fusing vector and keyword relevance."""
        s = self.settings
        return await self.engine.hybrid_recall(
            query,
            user_id=user_id,
            category=category,
            min_importance=min_importance,
            limit=s.recall_limit if limit is None else limit,
            vector_weight=s.vector_weight if vector_weight is None else vector_weight,
            keyword_weight=s.keyword_weight if keyword_weight is None else keyword_weight,
            min_similarity=s.hybrid_min_similarity,
        )

    async def find_similar_memories(
        self, memory_id: str, *, limit: int | None = None
    ) -> list[Memory]:
        """Find near-duplicates of a stored memory."""
        return await self.engine.find_similar_memories(
            memory_id,
            limit=self.settings.recall_limit if limit is None else limit,
            min_similarity=self.settings.similar_min_similarity,
        )

    async def forget(self, memory_id: str) -> None:
        """Delete a memory."""
        await self.engine.forget(memory_id)

    async def get_memories(
        self,
        user_id: str | None = None,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Memory]:
        """Get all memories (paginated, newest first)."""
        filters = MemoryFilters(agent_id=self.agent_id, user_id=user_id, category=category)
        return await self.store.get_memories(filters, limit, offset)

    async def prune_expired_memories(self) -> int:
        """Delete memories past their expiry."""
        return await self.store.purge_expired()

    # Tasks

    async def create_task(
        self,
        title: str,
        description: str | None = None,
        priority: int = 0,
        due_at: datetime | None = None,
        user_id: str | None = None,
        parent_task_id: str | None = None,
        metadata: JSONDict | None = None,
    ) -> Task:
        """Create a task."""
        now = datetime.now()
        task = Task(
            id=str(uuid4()),
            agent_id=self.agent_id,
            title=title,
            description=description,
            priority=priority,
            due_at=due_at,
            user_id=user_id,
            parent_task_id=parent_task_id,
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )
        return await self.store.create_task(task)

    async def update_task(self, task_id: str, **fields: object) -> Task:
        """Update task fields (title, description, status, priority, due_at, metadata)."""
        return await self.store.update_task(task_id, **fields)

    async def get_tasks(
        self,
        status: TaskStatus | str | None = None,
        user_id: str | None = None,
        limit: int = 50,
    ) -> list[Task]:
        return await self.store.list_tasks(
            self.agent_id,
            status=TaskStatus(status) if status is not None else None,
            user_id=user_id,
            limit=limit,
        )

    # Learnings

    async def learn(
        self,
        category: LearningCategory | str,
        trigger: str,
        lesson: str,
        action: str | None = None,
        severity: Severity | str = Severity.INFO,
        session_id: str | None = None,
        metadata: JSONDict | None = None,
    ) -> Learning:
        """Record a learning."""
        learning = Learning(
            id=str(uuid4()),
            agent_id=self.agent_id,
            category=LearningCategory(category),
            trigger=trigger,
            lesson=lesson,
            action=action,
            severity=Severity(severity),
            source_session_id=session_id,
            created_at=datetime.now(),
            metadata=metadata or {},
        )
        return await self.store.create_learning(learning)

    async def get_learnings(
        self,
        category: LearningCategory | str | None = None,
        severity: Severity | str | None = None,
        limit: int = 50,
    ) -> list[Learning]:
        return await self.store.list_learnings(
            self.agent_id,
            category=LearningCategory(category) if category is not None else None,
            severity=Severity(severity) if severity is not None else None,
            limit=limit,
        )

    # Context

    async def get_context(
        self,
        query: str,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        max_memories: int | None = None,
        max_messages: int | None = None,
    ) -> ContextPayload:
        """Get relevant memories and recent session messages for a query."""
        s = self.settings
        return await self.assembler.get_context(
            query,
            user_id=user_id,
            session_id=session_id,
            max_memories=s.max_context_memories if max_memories is None else max_memories,
            max_messages=s.max_context_messages if max_messages is None else max_messages,
            min_similarity=s.min_similarity,
        )
