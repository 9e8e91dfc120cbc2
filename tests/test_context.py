"""Tests for context assembly."""

from datetime import datetime, timedelta

import pytest

from conftest import AGENT_ID, make_memory
from recollect.context.assembler import ContextAssembler, render_summary
from recollect.core.errors import NotFound
from recollect.core.types import MessageRole
from recollect.embeddings.base import NullEmbeddingProvider
from recollect.memory.store import SQLiteMemoryStore
from recollect.recall.engine import RecallEngine


@pytest.fixture
def assembler(memory_store: SQLiteMemoryStore) -> ContextAssembler:
    engine = RecallEngine(memory_store, NullEmbeddingProvider(), AGENT_ID)
    return ContextAssembler(engine, memory_store)


def test_render_summary_empty():
    assert render_summary([]) == "No relevant memories found."


def test_render_summary_keeps_order_and_full_content():
    long_content = "x" * 5000
    memories = [make_memory("first"), make_memory(long_content)]
    assert render_summary(memories) == f"Relevant memories:\n- first\n- {long_content}"


@pytest.mark.asyncio
async def test_context_without_session(assembler, memory_store):
    now = datetime.now()
    await memory_store.insert_memory(make_memory("likes green tea", importance=0.4, created_at=now))
    await memory_store.insert_memory(make_memory("tea allergy: none", importance=0.9, created_at=now))

    payload = await assembler.get_context("tea")

    assert [m.content for m in payload.memories] == ["tea allergy: none", "likes green tea"]
    assert payload.recent_messages == []
    assert payload.summary == "Relevant memories:\n- tea allergy: none\n- likes green tea"


@pytest.mark.asyncio
async def test_context_caps_memories(assembler, memory_store):
    now = datetime.now()
    for i in range(8):
        await memory_store.insert_memory(make_memory(f"fact {i}", created_at=now - timedelta(minutes=i)))

    payload = await assembler.get_context("fact", max_memories=3)
    assert [m.content for m in payload.memories] == ["fact 0", "fact 1", "fact 2"]

    payload = await assembler.get_context("fact", max_memories=0)
    assert payload.memories == []
    assert payload.summary == "No relevant memories found."


@pytest.mark.asyncio
async def test_context_recent_messages_chronological(assembler, memory_store):
    session = await memory_store.create_session(AGENT_ID)
    for i in range(30):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        await memory_store.add_message(session.id, role, f"turn {i}")

    payload = await assembler.get_context("nothing matches", session_id=session.id)

    assert len(payload.recent_messages) == 20
    assert payload.recent_messages[0].content == "turn 10"
    assert payload.recent_messages[-1].content == "turn 29"
    assert payload.summary == "No relevant memories found."


@pytest.mark.asyncio
async def test_context_unknown_session(assembler):
    with pytest.raises(NotFound):
        await assembler.get_context("tea", session_id="missing")


@pytest.mark.asyncio
async def test_context_is_idempotent(assembler, memory_store):
    await memory_store.insert_memory(make_memory("uses vim", user_id="alice"))
    await memory_store.insert_memory(make_memory("uses vim keybindings everywhere"))
    session = await memory_store.create_session(AGENT_ID, user_id="alice")
    await memory_store.add_message(session.id, MessageRole.USER, "which editor?")

    first = await assembler.get_context("vim", user_id="alice", session_id=session.id)
    second = await assembler.get_context("vim", user_id="alice", session_id=session.id)

    assert first == second
    assert len(first.memories) == 2
