"""
Memory module - persistence for agent memories and conversation history.

Tables:
- memories: long-term facts with importance, optional embedding and expiry
- sessions / messages: conversation history
- tasks / learnings: agent bookkeeping

Storage: SQLite via aiosqlite
"""
