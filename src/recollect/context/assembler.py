"""Context assembly for agent prompts."""

from recollect.core.errors import NotFound
from recollect.core.logging import get_logger
from recollect.core.types import ContextPayload, Memory
from recollect.memory.base import MemoryStore
from recollect.recall.engine import RecallEngine

logger = get_logger("context.assembler")

SUMMARY_HEADER = "Relevant memories:"
EMPTY_SUMMARY = "No relevant memories found."


def render_summary(memories: list[Memory]) -> str:
    """Render recalled memories as a bulleted block, keeping recall order."""
    if not memories:
        return EMPTY_SUMMARY
    lines = [SUMMARY_HEADER]
    lines.extend(f"- {memory.content}" for memory in memories)
    return "\n".join(lines)


class ContextAssembler:
    """Builds the memory + history payload injected into an agent prompt."""

    def __init__(self, engine: RecallEngine, store: MemoryStore):
        self.engine = engine
        self.store = store

    async def get_context(
        self,
        query: str,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        max_memories: int = 5,
        max_messages: int = 20,
        min_similarity: float = 0.7,
    ) -> ContextPayload:
        """
        Get relevant context for a query.

        Args:
            query: Text to recall memories for
            user_id: Restrict to this user's memories plus agent-global ones
            session_id: Include this session's most recent messages
            max_memories: Recall result cap
            max_messages: Message cap (most recent kept, oldest first)
            min_similarity: Cosine threshold for semantic recall

        Raises:
            NotFound: session_id given but the session does not exist
        """
        memories = await self.engine.recall(
            query, user_id=user_id, limit=max_memories, min_similarity=min_similarity
        )

        recent_messages = []
        if session_id is not None:
            if await self.store.get_session(session_id) is None:
                raise NotFound("session", session_id)
            recent_messages = await self.store.get_recent_messages(session_id, max_messages)

        logger.debug(
            f"Context for query: memories={len(memories)} messages={len(recent_messages)}"
        )
        return ContextPayload(
            memories=memories,
            recent_messages=recent_messages,
            summary=render_summary(memories),
        )
