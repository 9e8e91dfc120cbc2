"""
Shared type definitions.

Core data structures used across modules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from recollect.core.typing import Embedding, JSONDict


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class TaskStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class LearningCategory(Enum):
    ERROR = "error"
    CORRECTION = "correction"
    IMPROVEMENT = "improvement"
    CAPABILITY_GAP = "capability_gap"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Memory:
    """Single long-term memory record."""

    id: str
    agent_id: str
    content: str
    created_at: datetime
    updated_at: datetime
    importance: float = 0.5  # nominal 0-1, not enforced
    user_id: str | None = None  # None = agent-global, visible to every user
    category: str | None = None
    source_session_id: str | None = None
    embedding: Embedding | None = None
    expires_at: datetime | None = None
    metadata: JSONDict = field(default_factory=dict)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass
class MemoryFilters:
    """Row filters shared by every store retrieval operation."""

    agent_id: str
    user_id: str | None = None
    category: str | None = None
    min_importance: float | None = None


@dataclass
class RecallQuery:
    """Per-call recall request. Never persisted."""

    text: str
    user_id: str | None = None
    category: str | None = None
    min_importance: float | None = None
    limit: int = 10
    min_similarity: float = 0.7
    vector_weight: float = 0.7
    keyword_weight: float = 0.3

    def __post_init__(self) -> None:
        # Negative limits mean "no results", not an error
        self.limit = max(0, self.limit)

    def filters(self, agent_id: str) -> MemoryFilters:
        return MemoryFilters(
            agent_id=agent_id,
            user_id=self.user_id,
            category=self.category,
            min_importance=self.min_importance,
        )


@dataclass
class ScoredCandidate:
    """Memory plus its ranking scores for the duration of one recall call."""

    memory: Memory
    vector_score: float | None = None  # cosine similarity
    keyword_score: float | None = None  # raw relevance, unbounded
    fused_score: float = 0.0

    @property
    def id(self) -> str:
        return self.memory.id


@dataclass
class Session:
    """Conversation session."""

    id: str
    agent_id: str
    started_at: datetime
    user_id: str | None = None
    channel: str | None = None
    ended_at: datetime | None = None
    summary: str | None = None
    metadata: JSONDict = field(default_factory=dict)


@dataclass
class Message:
    """Single message within a session."""

    id: str
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime
    token_count: int | None = None
    metadata: JSONDict = field(default_factory=dict)


@dataclass
class Task:
    """Agent-tracked task."""

    id: str
    agent_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    status: TaskStatus = TaskStatus.PENDING
    priority: int = 0
    user_id: str | None = None
    description: str | None = None
    due_at: datetime | None = None
    completed_at: datetime | None = None
    parent_task_id: str | None = None
    metadata: JSONDict = field(default_factory=dict)


@dataclass
class Learning:
    """Lesson the agent recorded about its own behavior."""

    id: str
    agent_id: str
    category: LearningCategory
    trigger: str
    lesson: str
    created_at: datetime
    severity: Severity = Severity.INFO
    action: str | None = None
    source_session_id: str | None = None
    applied_count: int = 0
    metadata: JSONDict = field(default_factory=dict)


@dataclass
class ContextPayload:
    """Recall output composed with session history for an agent prompt."""

    memories: list[Memory] = field(default_factory=list)
    recent_messages: list[Message] = field(default_factory=list)
    summary: str = ""
