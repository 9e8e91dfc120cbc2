"""
Error taxonomy.

- ProviderError: a configured embedding provider failed (fatal)
- RetrievalFailure: the memory store failed to answer (I/O, connectivity)
- NotFound: a referenced memory, session or task does not exist
- ValidationError: malformed query options

"No embedding available" is not an error; see recollect.embeddings.base.Unavailable.
"""


class RecollectError(Exception):
    """Base class for all recollect errors."""


class ProviderError(RecollectError):
    """Configured embedding provider failed for a reason other than input length."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider} embedding provider failed: {message}")


class RetrievalFailure(RecollectError):
    """Memory store operation failed."""


class NotFound(RecollectError):
    """Referenced record does not exist."""

    def __init__(self, kind: str, record_id: str, detail: str | None = None):
        self.kind = kind
        self.record_id = record_id
        message = f"{kind} {record_id} not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ValidationError(RecollectError, ValueError):
    """Query or record options are malformed."""
