"""Shared fixtures: temporary store and deterministic embedding providers."""

from datetime import datetime
from pathlib import Path
from uuid import uuid4

import pytest

from recollect.core.errors import ProviderError
from recollect.core.types import Memory
from recollect.core.typing import Embedding
from recollect.embeddings.base import EmbeddingProvider, Unavailable
from recollect.memory.store import SQLiteMemoryStore
from recollect.recall.engine import RecallEngine

AGENT_ID = "agent-1"

# Unit vectors chosen so cosine similarity to QUERY_VECTOR is easy to read:
# cos(QUERY, TYPESCRIPT) = 0.85, cos(QUERY, COFFEE) = 0.2
QUERY_VECTOR = [1.0, 0.0, 0.0]
TYPESCRIPT_VECTOR = [0.85, 0.5267826876426369, 0.0]
COFFEE_VECTOR = [0.2, 0.0, 0.9797958971132712]
UNRELATED_VECTOR = [0.0, 0.0, 1.0]


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns fixed vectors per text; unknown text gets an unrelated vector."""

    name = "fake"

    def __init__(self, vectors: dict[str, Embedding] | None = None):
        self.vectors = dict(vectors or {})
        self.calls: list[str] = []

    async def embed(self, text: str) -> Embedding | Unavailable:
        self.calls.append(text)
        return list(self.vectors.get(text, UNRELATED_VECTOR))


class FailingEmbeddingProvider(EmbeddingProvider):
    """Configured provider whose every call fails (e.g. bad credentials)."""

    name = "failing"

    async def embed(self, text: str) -> Embedding | Unavailable:
        raise ProviderError(self.name, "authentication failed")


def make_memory(
    content: str,
    *,
    importance: float = 0.5,
    created_at: datetime | None = None,
    embedding: Embedding | None = None,
    agent_id: str = AGENT_ID,
    **fields,
) -> Memory:
    """Build a memory record for direct store insertion."""
    created_at = created_at or datetime.now()
    return Memory(
        id=fields.pop("id", str(uuid4())),
        agent_id=agent_id,
        content=content,
        importance=importance,
        embedding=embedding,
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )


@pytest.fixture
async def memory_store(tmp_path: Path):
    """Create a temporary memory store."""
    store = SQLiteMemoryStore(tmp_path / "test.db")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider(
        {
            "programming language preferences": QUERY_VECTOR,
            "prefers TypeScript": TYPESCRIPT_VECTOR,
            "likes coffee": COFFEE_VECTOR,
        }
    )


@pytest.fixture
def semantic_engine(memory_store: SQLiteMemoryStore, fake_embedder: FakeEmbeddingProvider):
    return RecallEngine(memory_store, fake_embedder, AGENT_ID)
