"""
Core module - configuration, logging, errors, shared types.

Components:
- config: Settings management via pydantic-settings
- errors: Error taxonomy (provider, retrieval, not found, validation)
- types: Shared data structures (Memory, Session, ContextPayload, etc.)
- logging: Structured logging setup
"""

from recollect.core.config import Settings
from recollect.core.types import ContextPayload, Memory

__all__ = ["Settings", "Memory", "ContextPayload"]
