"""LiteLLM embedding provider - unified interface for hosted embedding models."""

from pathlib import Path
from typing import Any

import litellm
import yaml
from litellm import aembedding

from recollect.core.config import Settings
from recollect.core.errors import ProviderError
from recollect.core.logging import get_logger
from recollect.core.typing import Embedding
from recollect.embeddings.base import (
    INPUT_TOO_LONG,
    EmbeddingProvider,
    NullEmbeddingProvider,
    Unavailable,
)

logger = get_logger("embeddings.litellm")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True

DEFAULT_REGISTRY_PATH = Path(__file__).parent.parent / "configs" / "embeddings.yaml"


class EmbeddingModelConfig:
    """Embedding model configuration from YAML."""

    def __init__(self, data: dict[str, Any]):
        self.model_id = data["model_id"]
        self.litellm_name = data["litellm_name"]
        self.provider = data["provider"]
        self.dimensions = data.get("dimensions")
        self.max_input_tokens = data.get("max_input_tokens")

    @classmethod
    def passthrough(cls, model_id: str, provider: str) -> "EmbeddingModelConfig":
        """Config for a model missing from the registry, used verbatim."""
        return cls({"model_id": model_id, "litellm_name": model_id, "provider": provider})


class EmbeddingModelRegistry:
    """Load and manage embedding model configurations from YAML."""

    def __init__(self, config_path: Path | str = DEFAULT_REGISTRY_PATH):
        with open(config_path) as f:
            data = yaml.safe_load(f)

        self.models = {m["model_id"]: EmbeddingModelConfig(m) for m in data["models"]}
        self.defaults: dict[str, str] = data.get("defaults", {})
        logger.debug(f"Loaded {len(self.models)} embedding models from registry")

    def get(self, model_id: str) -> EmbeddingModelConfig | None:
        """Get model config by ID."""
        return self.models.get(model_id)

    def resolve(self, provider: str, model_id: str = "") -> EmbeddingModelConfig:
        """Resolve a model id (or the provider default) to its config."""
        if not model_id:
            model_id = self.defaults.get(provider, "")
            if not model_id:
                raise ProviderError(provider, "no default embedding model in registry")

        config = self.get(model_id)
        if config is None:
            logger.info(f"Embedding model {model_id} not in registry, passing to LiteLLM as-is")
            return EmbeddingModelConfig.passthrough(model_id, provider)
        if config.provider != provider:
            raise ProviderError(
                provider, f"model {model_id} belongs to provider {config.provider}"
            )
        return config


def _is_input_too_long(error: Exception) -> bool:
    if isinstance(error, litellm.ContextWindowExceededError):
        return True
    message = str(error).lower()
    return "maximum context length" in message or "too many tokens" in message


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Embedding provider backed by litellm.aembedding."""

    def __init__(self, provider: str, model: EmbeddingModelConfig, api_key: str):
        if not api_key:
            raise ProviderError(provider, "no API key configured")
        self.name = provider
        self.model = model
        self._api_key = api_key

    async def embed(self, text: str) -> Embedding | Unavailable:
        logger.debug(
            f"LiteLLM embedding request: model={self.model.litellm_name}, chars={len(text)}"
        )
        try:
            response = await aembedding(
                model=self.model.litellm_name,
                input=[text],
                api_key=self._api_key,
            )
        except Exception as e:
            if _is_input_too_long(e):
                logger.warning(f"Text too long for {self.model.model_id}, skipping embedding")
                return INPUT_TOO_LONG
            logger.error(f"LiteLLM embedding error for {self.model.model_id}: {e}")
            raise ProviderError(self.name, str(e)) from e

        vector = self._extract_vector(response)
        if self.model.dimensions and len(vector) != self.model.dimensions:
            raise ProviderError(
                self.name,
                f"expected {self.model.dimensions} dimensions, got {len(vector)}",
            )
        return vector

    def _extract_vector(self, response: Any) -> Embedding:
        """Pull the first vector out of an embedding response."""
        try:
            item = response.data[0]
            raw = item["embedding"] if isinstance(item, dict) else item.embedding
            return [float(x) for x in raw]
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            raise ProviderError(self.name, f"malformed embedding response: {e}") from e


def create_embedding_provider(
    settings: Settings,
    registry: EmbeddingModelRegistry | None = None,
) -> EmbeddingProvider:
    """Create the embedding provider selected in settings."""
    if settings.embedding_provider == "none":
        logger.info("No embedding provider configured, recall will use keyword search")
        return NullEmbeddingProvider()

    registry = registry or EmbeddingModelRegistry()
    model = registry.resolve(settings.embedding_provider, settings.embedding_model)
    logger.info(f"Using {settings.embedding_provider} embeddings: {model.model_id}")
    return LiteLLMEmbeddingProvider(
        provider=settings.embedding_provider,
        model=model,
        api_key=settings.embedding_api_key,
    )
