"""
Embedding provider interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from recollect.core.typing import Embedding


@dataclass(frozen=True)
class Unavailable:
    """No embedding can be produced for this call.

    Returned (never raised) when no provider is configured, when the caller
    disabled embeddings, or when the text exceeds the model's input window.
    Callers fall back to keyword retrieval.
    """

    reason: str


NOT_CONFIGURED = Unavailable("no embedding provider configured")
DISABLED = Unavailable("embeddings disabled for this call")
INPUT_TOO_LONG = Unavailable("input too long for embedding model")


class EmbeddingProvider(ABC):
    """Abstract embedding provider."""

    name: str = "base"

    @abstractmethod
    async def embed(self, text: str) -> Embedding | Unavailable:
        """
        Embed text into a fixed-length vector.

        Returns:
            The vector, or Unavailable when no embedding can be produced

        Raises:
            ProviderError: configured provider failed (auth, network, bad response)
        """
        ...

    @property
    def configured(self) -> bool:
        """Whether this provider can ever return a vector."""
        return True


class NullEmbeddingProvider(EmbeddingProvider):
    """Provider used when embeddings are not configured."""

    name = "none"

    async def embed(self, text: str) -> Embedding | Unavailable:
        return NOT_CONFIGURED

    @property
    def configured(self) -> bool:
        return False
