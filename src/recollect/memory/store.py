"""SQLite memory store with vector and keyword retrieval over agent memories."""

import json
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite

from recollect.core.errors import NotFound, RetrievalFailure
from recollect.core.logging import get_logger
from recollect.core.types import (
    Learning,
    LearningCategory,
    Memory,
    MemoryFilters,
    Message,
    MessageRole,
    ScoredCandidate,
    Session,
    Severity,
    Task,
    TaskStatus,
)
from recollect.core.typing import Embedding, JSONDict
from recollect.memory.base import MemoryStore
from recollect.recall.scoring import cosine_similarity, keyword_relevance, rank_key

logger = get_logger("memory.store")


# Python 3.12+ fix: Register datetime adapters explicitly
def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return dt.isoformat()


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return datetime.fromisoformat(val.decode())


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    user_id TEXT,
    channel TEXT,
    started_at DATETIME NOT NULL,
    ended_at DATETIME,
    summary TEXT,
    metadata TEXT  -- JSON object
);

CREATE INDEX IF NOT EXISTS idx_sessions_agent
    ON sessions(agent_id, started_at);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at DATETIME NOT NULL,
    token_count INTEGER,
    metadata TEXT  -- JSON object
);

CREATE INDEX IF NOT EXISTS idx_messages_session
    ON messages(session_id, created_at);

-- Long-term memories; user_id NULL = agent-global
CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    user_id TEXT,
    category TEXT,
    content TEXT NOT NULL,
    importance REAL NOT NULL DEFAULT 0.5,
    source_session_id TEXT,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    expires_at DATETIME,
    embedding TEXT,  -- JSON array, NULL when not generated
    metadata TEXT  -- JSON object
);

CREATE INDEX IF NOT EXISTS idx_memories_agent
    ON memories(agent_id, importance DESC, created_at DESC);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    user_id TEXT,
    title TEXT NOT NULL,
    description TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    priority INTEGER NOT NULL DEFAULT 0,
    due_at DATETIME,
    completed_at DATETIME,
    parent_task_id TEXT,
    metadata TEXT,  -- JSON object
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
);

CREATE TABLE IF NOT EXISTS learnings (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    category TEXT NOT NULL,
    trigger TEXT NOT NULL,
    lesson TEXT NOT NULL,
    action TEXT,
    severity TEXT NOT NULL DEFAULT 'info',
    source_session_id TEXT,
    applied_count INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL,
    metadata TEXT  -- JSON object
);
"""

MEMORY_COLUMNS = (
    "id, agent_id, user_id, category, content, importance, source_session_id, "
    "created_at, updated_at, expires_at, embedding, metadata"
)
SESSION_COLUMNS = "id, agent_id, user_id, channel, started_at, ended_at, summary, metadata"
MESSAGE_COLUMNS = "id, session_id, role, content, created_at, token_count, metadata"
TASK_COLUMNS = (
    "id, agent_id, user_id, title, description, status, priority, due_at, "
    "completed_at, parent_task_id, metadata, created_at, updated_at"
)
LEARNING_COLUMNS = (
    "id, agent_id, category, trigger, lesson, action, severity, source_session_id, "
    "applied_count, created_at, metadata"
)

TASK_UPDATABLE_FIELDS = ("title", "description", "status", "priority", "due_at", "metadata")


def _dumps(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None


def _loads(value: str | None, default: Any = None) -> Any:
    return json.loads(value) if value else default


def _casefold_contains(content: str, query: str) -> bool:
    """Unicode-aware case-insensitive substring test (SQLite LIKE folds ASCII only)."""
    return query.casefold() in content.casefold()


def _row_to_memory(row: tuple) -> Memory:
    return Memory(
        id=row[0],
        agent_id=row[1],
        user_id=row[2],
        category=row[3],
        content=row[4],
        importance=row[5],
        source_session_id=row[6],
        created_at=row[7],
        updated_at=row[8],
        expires_at=row[9],
        embedding=_loads(row[10]),
        metadata=_loads(row[11], {}),
    )


def _row_to_session(row: tuple) -> Session:
    return Session(
        id=row[0],
        agent_id=row[1],
        user_id=row[2],
        channel=row[3],
        started_at=row[4],
        ended_at=row[5],
        summary=row[6],
        metadata=_loads(row[7], {}),
    )


def _row_to_message(row: tuple) -> Message:
    return Message(
        id=row[0],
        session_id=row[1],
        role=MessageRole(row[2]),
        content=row[3],
        created_at=row[4],
        token_count=row[5],
        metadata=_loads(row[6], {}),
    )


def _row_to_task(row: tuple) -> Task:
    return Task(
        id=row[0],
        agent_id=row[1],
        user_id=row[2],
        title=row[3],
        description=row[4],
        status=TaskStatus(row[5]),
        priority=row[6],
        due_at=row[7],
        completed_at=row[8],
        parent_task_id=row[9],
        metadata=_loads(row[10], {}),
        created_at=row[11],
        updated_at=row[12],
    )


def _row_to_learning(row: tuple) -> Learning:
    return Learning(
        id=row[0],
        agent_id=row[1],
        category=LearningCategory(row[2]),
        trigger=row[3],
        lesson=row[4],
        action=row[5],
        severity=Severity(row[6]),
        source_session_id=row[7],
        applied_count=row[8],
        created_at=row[9],
        metadata=_loads(row[10], {}),
    )


def _filter_clause(filters: MemoryFilters, now: datetime) -> tuple[str, list[Any]]:
    """Build the WHERE clause shared by memory retrieval queries."""
    clauses = ["agent_id = ?", "(expires_at IS NULL OR expires_at > ?)"]
    params: list[Any] = [filters.agent_id, now]

    if filters.user_id is not None:
        # Agent-global memories (no user) are visible to every user
        clauses.append("(user_id = ? OR user_id IS NULL)")
        params.append(filters.user_id)
    if filters.category is not None:
        clauses.append("category = ?")
        params.append(filters.category)
    if filters.min_importance is not None:
        clauses.append("importance >= ?")
        params.append(filters.min_importance)

    return " AND ".join(clauses), params


class SQLiteMemoryStore(MemoryStore):
    """SQLite-backed memory store.

    Embeddings are stored as JSON arrays; cosine similarity is computed in
    Python over the rows that pass the SQL filters.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Use detect_types to enable our custom datetime converters
        self._conn = await aiosqlite.connect(
            self.db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        )
        await self._conn.create_function(
            "casefold_contains", 2, _casefold_contains, deterministic=True
        )
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to memory store: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Memory store not connected. Call connect() first.")
        return self._conn

    @asynccontextmanager
    async def _store_errors(self, operation: str) -> AsyncIterator[None]:
        """Translate SQLite errors into RetrievalFailure."""
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"Memory store {operation} failed: {e}")
            raise RetrievalFailure(f"{operation} failed: {e}") from e

    # Memory operations

    async def insert_memory(self, memory: Memory) -> Memory:
        """Store memory record."""
        async with self._store_errors("insert_memory"):
            await self.conn.execute(
                f"INSERT INTO memories ({MEMORY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    memory.id,
                    memory.agent_id,
                    memory.user_id,
                    memory.category,
                    memory.content,
                    memory.importance,
                    memory.source_session_id,
                    memory.created_at,
                    memory.updated_at,
                    memory.expires_at,
                    _dumps(memory.embedding),
                    _dumps(memory.metadata or {}),
                ),
            )
            await self.conn.commit()
        return memory

    async def delete_memory(self, memory_id: str) -> None:
        """Delete memory (idempotent)."""
        async with self._store_errors("delete_memory"):
            await self.conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            await self.conn.commit()

    async def get_memory(self, memory_id: str) -> Memory | None:
        """Get specific memory by ID."""
        async with self._store_errors("get_memory"):
            async with self.conn.execute(
                f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return _row_to_memory(row) if row else None

    async def get_memory_embedding(self, memory_id: str, agent_id: str) -> Embedding:
        """Get stored embedding for a memory owned by agent_id."""
        async with self._store_errors("get_memory_embedding"):
            async with self.conn.execute(
                "SELECT embedding FROM memories WHERE id = ? AND agent_id = ?",
                (memory_id, agent_id),
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            raise NotFound("memory", memory_id)
        embedding = _loads(row[0])
        if not embedding:
            raise NotFound("memory", memory_id, "no embedding")
        return embedding

    async def vector_search(
        self,
        query_vector: Embedding,
        filters: MemoryFilters,
        min_similarity: float,
        limit: int,
    ) -> list[ScoredCandidate]:
        """Cosine-similarity search over embedded memories."""
        if limit <= 0:
            return []

        where, params = _filter_clause(filters, datetime.now())
        sql = f"SELECT {MEMORY_COLUMNS} FROM memories WHERE {where} AND embedding IS NOT NULL"

        candidates = []
        async with self._store_errors("vector_search"):
            async with self.conn.execute(sql, params) as cursor:
                async for row in cursor:
                    memory = _row_to_memory(row)
                    if len(memory.embedding) != len(query_vector):
                        logger.debug(f"Skipping memory {memory.id}: embedding dimension mismatch")
                        continue
                    similarity = cosine_similarity(query_vector, memory.embedding)
                    if similarity >= min_similarity:
                        candidates.append(ScoredCandidate(memory=memory, vector_score=similarity))

        candidates.sort(key=lambda c: rank_key(c, c.vector_score), reverse=True)
        logger.debug(f"Vector search returned {len(candidates[:limit])} of {len(candidates)} matches")
        return candidates[:limit]

    async def keyword_search(
        self,
        query_text: str,
        filters: MemoryFilters,
        limit: int,
    ) -> list[ScoredCandidate]:
        """Case-insensitive substring search over memory content."""
        if limit <= 0:
            return []

        where, params = _filter_clause(filters, datetime.now())
        sql = f"""
            SELECT {MEMORY_COLUMNS}
            FROM memories
            WHERE {where} AND casefold_contains(content, ?)
            ORDER BY importance DESC, created_at DESC, id
            LIMIT ?
        """
        params.extend([query_text, limit])

        candidates = []
        async with self._store_errors("keyword_search"):
            async with self.conn.execute(sql, params) as cursor:
                async for row in cursor:
                    memory = _row_to_memory(row)
                    candidates.append(
                        ScoredCandidate(
                            memory=memory,
                            keyword_score=keyword_relevance(query_text, memory.content),
                        )
                    )

        logger.debug(f"Keyword search returned {len(candidates)} results for query: {query_text}")
        return candidates

    async def get_memories(
        self,
        filters: MemoryFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Memory]:
        """List memories newest first (exact user match, no agent-global rows)."""
        if limit <= 0:
            return []

        clauses = ["agent_id = ?", "(expires_at IS NULL OR expires_at > ?)"]
        params: list[Any] = [filters.agent_id, datetime.now()]
        if filters.user_id is not None:
            clauses.append("user_id = ?")
            params.append(filters.user_id)
        if filters.category is not None:
            clauses.append("category = ?")
            params.append(filters.category)
        if filters.min_importance is not None:
            clauses.append("importance >= ?")
            params.append(filters.min_importance)
        params.extend([limit, max(0, offset)])

        sql = (
            f"SELECT {MEMORY_COLUMNS} FROM memories WHERE {' AND '.join(clauses)} "
            "ORDER BY created_at DESC, id LIMIT ? OFFSET ?"
        )
        async with self._store_errors("get_memories"):
            async with self.conn.execute(sql, params) as cursor:
                return [_row_to_memory(row) async for row in cursor]

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete expired memories, return how many were removed."""
        async with self._store_errors("purge_expired"):
            cursor = await self.conn.execute(
                "DELETE FROM memories WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now or datetime.now(),),
            )
            await self.conn.commit()
        removed = cursor.rowcount
        if removed:
            logger.info(f"Purged {removed} expired memories")
        return removed

    # Session operations

    async def create_session(
        self,
        agent_id: str,
        user_id: str | None = None,
        channel: str | None = None,
        metadata: JSONDict | None = None,
    ) -> Session:
        """Start a new session."""
        session = Session(
            id=str(uuid4()),
            agent_id=agent_id,
            user_id=user_id,
            channel=channel,
            started_at=datetime.now(),
            metadata=metadata or {},
        )
        async with self._store_errors("create_session"):
            await self.conn.execute(
                f"INSERT INTO sessions ({SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.agent_id,
                    session.user_id,
                    session.channel,
                    session.started_at,
                    None,
                    None,
                    _dumps(session.metadata),
                ),
            )
            await self.conn.commit()
        return session

    async def end_session(self, session_id: str, summary: str | None = None) -> Session:
        """Mark session ended with optional summary."""
        async with self._store_errors("end_session"):
            cursor = await self.conn.execute(
                "UPDATE sessions SET ended_at = ?, summary = ? WHERE id = ?",
                (datetime.now(), summary, session_id),
            )
            await self.conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("session", session_id)
        session = await self.get_session(session_id)
        assert session is not None
        return session

    async def get_session(self, session_id: str) -> Session | None:
        """Get session by ID."""
        async with self._store_errors("get_session"):
            async with self.conn.execute(
                f"SELECT {SESSION_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return _row_to_session(row) if row else None

    async def get_recent_sessions(
        self, agent_id: str, user_id: str | None = None, limit: int = 10
    ) -> list[Session]:
        """Get most recently started sessions."""
        sql = f"SELECT {SESSION_COLUMNS} FROM sessions WHERE agent_id = ?"
        params: list[Any] = [agent_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        sql += " ORDER BY started_at DESC LIMIT ?"
        params.append(max(0, limit))

        async with self._store_errors("get_recent_sessions"):
            async with self.conn.execute(sql, params) as cursor:
                return [_row_to_session(row) async for row in cursor]

    # Message operations

    async def add_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        token_count: int | None = None,
        metadata: JSONDict | None = None,
    ) -> Message:
        """Append a message to a session."""
        if await self.get_session(session_id) is None:
            raise NotFound("session", session_id)

        message = Message(
            id=str(uuid4()),
            session_id=session_id,
            role=role,
            content=content,
            created_at=datetime.now(),
            token_count=token_count,
            metadata=metadata or {},
        )
        async with self._store_errors("add_message"):
            await self.conn.execute(
                f"INSERT INTO messages ({MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    message.id,
                    message.session_id,
                    message.role.value,
                    message.content,
                    message.created_at,
                    message.token_count,
                    _dumps(message.metadata),
                ),
            )
            await self.conn.commit()
        return message

    async def get_messages(
        self, session_id: str, limit: int = 100, offset: int = 0
    ) -> list[Message]:
        """Get session messages oldest first (paginated)."""
        async with self._store_errors("get_messages"):
            async with self.conn.execute(
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE session_id = ? "
                "ORDER BY created_at, rowid LIMIT ? OFFSET ?",
                (session_id, max(0, limit), max(0, offset)),
            ) as cursor:
                return [_row_to_message(row) async for row in cursor]

    async def get_recent_messages(self, session_id: str, limit: int) -> list[Message]:
        """Get the latest messages of a session in chronological order."""
        if limit <= 0:
            return []
        async with self._store_errors("get_recent_messages"):
            async with self.conn.execute(
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE session_id = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (session_id, limit),
            ) as cursor:
                messages = [_row_to_message(row) async for row in cursor]
        messages.reverse()
        return messages

    # Task operations

    async def create_task(self, task: Task) -> Task:
        """Create a new task."""
        async with self._store_errors("create_task"):
            await self.conn.execute(
                f"INSERT INTO tasks ({TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    task.id,
                    task.agent_id,
                    task.user_id,
                    task.title,
                    task.description,
                    task.status.value,
                    task.priority,
                    task.due_at,
                    task.completed_at,
                    task.parent_task_id,
                    _dumps(task.metadata),
                    task.created_at,
                    task.updated_at,
                ),
            )
            await self.conn.commit()
        return task

    async def get_task(self, task_id: str) -> Task | None:
        """Get task by ID."""
        async with self._store_errors("get_task"):
            async with self.conn.execute(
                f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return _row_to_task(row) if row else None

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        """Update task fields; completing a task stamps completed_at."""
        now = datetime.now()
        updates = ["updated_at = ?"]
        values: list[Any] = [now]

        for key, value in fields.items():
            if key not in TASK_UPDATABLE_FIELDS or value is None:
                continue
            if key == "status":
                status = TaskStatus(value)
                value = status.value
                if status == TaskStatus.DONE:
                    updates.append("completed_at = ?")
                    values.append(now)
            elif key == "metadata":
                value = _dumps(value)
            updates.append(f"{key} = ?")
            values.append(value)

        values.append(task_id)
        async with self._store_errors("update_task"):
            cursor = await self.conn.execute(
                f"UPDATE tasks SET {', '.join(updates)} WHERE id = ?", values
            )
            await self.conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("task", task_id)

        task = await self.get_task(task_id)
        assert task is not None
        return task

    async def list_tasks(
        self,
        agent_id: str,
        status: TaskStatus | None = None,
        user_id: str | None = None,
        limit: int = 50,
    ) -> list[Task]:
        """List tasks, highest priority first."""
        sql = f"SELECT {TASK_COLUMNS} FROM tasks WHERE agent_id = ?"
        params: list[Any] = [agent_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(TaskStatus(status).value)
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        sql += " ORDER BY priority DESC, created_at DESC LIMIT ?"
        params.append(max(0, limit))

        async with self._store_errors("list_tasks"):
            async with self.conn.execute(sql, params) as cursor:
                return [_row_to_task(row) async for row in cursor]

    # Learning operations

    async def create_learning(self, learning: Learning) -> Learning:
        """Record a learning."""
        async with self._store_errors("create_learning"):
            await self.conn.execute(
                f"INSERT INTO learnings ({LEARNING_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    learning.id,
                    learning.agent_id,
                    learning.category.value,
                    learning.trigger,
                    learning.lesson,
                    learning.action,
                    learning.severity.value,
                    learning.source_session_id,
                    learning.applied_count,
                    learning.created_at,
                    _dumps(learning.metadata),
                ),
            )
            await self.conn.commit()
        return learning

    async def list_learnings(
        self,
        agent_id: str,
        category: LearningCategory | None = None,
        severity: Severity | None = None,
        limit: int = 50,
    ) -> list[Learning]:
        """List learnings, newest first."""
        sql = f"SELECT {LEARNING_COLUMNS} FROM learnings WHERE agent_id = ?"
        params: list[Any] = [agent_id]
        if category is not None:
            sql += " AND category = ?"
            params.append(LearningCategory(category).value)
        if severity is not None:
            sql += " AND severity = ?"
            params.append(Severity(severity).value)
        sql += " ORDER BY created_at DESC LIMIT ?"
        params.append(max(0, limit))

        async with self._store_errors("list_learnings"):
            async with self.conn.execute(sql, params) as cursor:
                return [_row_to_learning(row) async for row in cursor]
