"""Tests for embedding providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import litellm
import pytest

from recollect.core.config import Settings
from recollect.core.errors import ProviderError
from recollect.embeddings import litellm_provider
from recollect.embeddings.base import NOT_CONFIGURED, NullEmbeddingProvider, Unavailable
from recollect.embeddings.litellm_provider import (
    EmbeddingModelConfig,
    EmbeddingModelRegistry,
    LiteLLMEmbeddingProvider,
    create_embedding_provider,
)


def _response(vector: list[float]) -> SimpleNamespace:
    return SimpleNamespace(data=[{"embedding": vector, "index": 0, "object": "embedding"}])


def _small_model(dimensions: int | None = 3) -> EmbeddingModelConfig:
    return EmbeddingModelConfig(
        {
            "model_id": "tiny",
            "litellm_name": "text-embedding-3-small",
            "provider": "openai",
            "dimensions": dimensions,
        }
    )


@pytest.mark.asyncio
async def test_null_provider_is_unavailable():
    """No provider configured means Unavailable, never an exception."""
    provider = NullEmbeddingProvider()
    result = await provider.embed("anything")
    assert isinstance(result, Unavailable)
    assert result == NOT_CONFIGURED
    assert not provider.configured


def test_registry_loads_packaged_yaml():
    registry = EmbeddingModelRegistry()
    assert registry.get("text-embedding-3-small").dimensions == 1536
    assert registry.resolve("openai").model_id == "text-embedding-3-small"
    assert registry.resolve("voyage").litellm_name == "voyage/voyage-3"


def test_registry_passthrough_unknown_model():
    """Unknown model ids go to LiteLLM verbatim."""
    config = EmbeddingModelRegistry().resolve("openai", "my-custom-embedder")
    assert config.litellm_name == "my-custom-embedder"
    assert config.dimensions is None


def test_registry_rejects_provider_mismatch():
    with pytest.raises(ProviderError):
        EmbeddingModelRegistry().resolve("voyage", "text-embedding-3-small")


def test_factory_defaults_to_null_provider():
    settings = Settings(_env_file=None)
    assert isinstance(create_embedding_provider(settings), NullEmbeddingProvider)


def test_factory_requires_api_key():
    """Selecting a provider without credentials fails at construction."""
    settings = Settings(embedding_provider="openai", openai_api_key="", _env_file=None)
    with pytest.raises(ProviderError):
        create_embedding_provider(settings)


def test_factory_builds_litellm_provider():
    settings = Settings(
        embedding_provider="voyage",
        voyage_api_key="vk-test",
        embedding_model="voyage-3-lite",
        _env_file=None,
    )
    provider = create_embedding_provider(settings)
    assert isinstance(provider, LiteLLMEmbeddingProvider)
    assert provider.name == "voyage"
    assert provider.model.dimensions == 512


@pytest.mark.asyncio
async def test_litellm_provider_returns_vector(monkeypatch):
    mock = AsyncMock(return_value=_response([0.1, 0.2, 0.3]))
    monkeypatch.setattr(litellm_provider, "aembedding", mock)

    provider = LiteLLMEmbeddingProvider("openai", _small_model(), api_key="sk-test")
    result = await provider.embed("hello")

    assert result == [0.1, 0.2, 0.3]
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "text-embedding-3-small"
    assert kwargs["input"] == ["hello"]
    assert kwargs["api_key"] == "sk-test"


@pytest.mark.asyncio
async def test_litellm_provider_too_long_is_unavailable(monkeypatch):
    """Context-window errors degrade to Unavailable."""
    error = litellm.ContextWindowExceededError(
        message="maximum context length exceeded",
        model="text-embedding-3-small",
        llm_provider="openai",
    )
    monkeypatch.setattr(litellm_provider, "aembedding", AsyncMock(side_effect=error))

    provider = LiteLLMEmbeddingProvider("openai", _small_model(), api_key="sk-test")
    result = await provider.embed("x" * 100_000)
    assert isinstance(result, Unavailable)


@pytest.mark.asyncio
async def test_litellm_provider_auth_failure_is_fatal(monkeypatch):
    """Any other provider failure raises ProviderError."""
    monkeypatch.setattr(
        litellm_provider, "aembedding", AsyncMock(side_effect=RuntimeError("invalid api key"))
    )

    provider = LiteLLMEmbeddingProvider("openai", _small_model(), api_key="sk-bad")
    with pytest.raises(ProviderError) as exc_info:
        await provider.embed("hello")
    assert exc_info.value.provider == "openai"


@pytest.mark.asyncio
async def test_litellm_provider_rejects_wrong_dimensions(monkeypatch):
    monkeypatch.setattr(litellm_provider, "aembedding", AsyncMock(return_value=_response([0.1, 0.2])))

    provider = LiteLLMEmbeddingProvider("openai", _small_model(dimensions=3), api_key="sk-test")
    with pytest.raises(ProviderError):
        await provider.embed("hello")


@pytest.mark.asyncio
async def test_litellm_provider_malformed_response(monkeypatch):
    monkeypatch.setattr(
        litellm_provider, "aembedding", AsyncMock(return_value=SimpleNamespace(data=[]))
    )

    provider = LiteLLMEmbeddingProvider("openai", _small_model(), api_key="sk-test")
    with pytest.raises(ProviderError):
        await provider.embed("hello")
