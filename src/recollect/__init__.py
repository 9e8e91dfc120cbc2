"""
Recollect - durable, queryable memory for conversational agents.

Package structure:
- core: Configuration, logging, errors, shared types
- embeddings: Embedding provider abstraction (none, LiteLLM-backed)
- memory: Memory store interface and SQLite implementation
- recall: Recall engine (keyword, semantic, hybrid retrieval)
- context: Context assembly for agent prompts
- client: AgentMemory facade for the agent integration layer
"""

__version__ = "0.1.0"
