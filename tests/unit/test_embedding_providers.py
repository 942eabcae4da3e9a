"""Unit tests for embedding provider adapters: OpenAI, Nomic."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from docindex.config.settings import Settings
from docindex.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from docindex.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docindex.utils.errors import EmbeddingError

_OPENAI_CLIENT = "docindex.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"
_NOMIC_CLIENT = "docindex.providers.embedding.nomic_embedding_provider.openai.AsyncOpenAI"


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(vectors: list[list[float]], order: list[int] | None = None) -> MagicMock:
    """Build an embeddings response; *order* lists the item indices as returned."""
    indices = order or list(range(len(vectors)))
    response = MagicMock()
    response.data = [MagicMock(index=i, embedding=vectors[i]) for i in indices]
    response.usage = MagicMock(total_tokens=10)
    return response


def _api_error(message: str = "Rate limit") -> openai.APIError:
    return openai.APIError(message=message, request=MagicMock(), body=None)


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_defaults(self, settings: Settings) -> None:
        provider = OpenAIEmbeddingProvider(settings)
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.get_dimension() == 1536
        assert provider.is_available() is True

    def test_is_available_without_key(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(openai_api_key=""))
        assert provider.is_available() is False

    def test_compatible_endpoint_label_and_dimension(self) -> None:
        provider = OpenAIEmbeddingProvider(
            _settings(
                openai_base_url="https://api.together.xyz/v1",
                openai_embedding_model="BAAI/bge-base-en-v1.5",
            )
        )
        assert provider.get_provider_name() == "openai-compatible_embedding"
        assert provider.get_dimension() == 768

    def test_unknown_model_uses_configured_dimension(self) -> None:
        provider = OpenAIEmbeddingProvider(
            _settings(openai_embedding_model="custom-embedder", embedding_dimension=384)
        )
        assert provider.get_dimension() == 384

    @pytest.mark.asyncio
    async def test_embed_returns_input_order(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            return_value=_response([[0.1], [0.2], [0.3]], order=[2, 0, 1])
        )

        with patch(_OPENAI_CLIENT, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["a", "b", "c"])

        assert result == [[0.1], [0.2], [0.3]]

    @pytest.mark.asyncio
    async def test_embed_empty_makes_no_call(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock()

        with patch(_OPENAI_CLIENT, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            assert await provider.embed([]) == []

        mock_client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_large_batches_are_split(self, settings: Settings) -> None:
        texts = [f"t{i}" for i in range(2050)]
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=[
                _response([[0.0]] * 2048),
                _response([[1.0]] * 2),
            ]
        )

        with patch(_OPENAI_CLIENT, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(texts)

        assert len(result) == 2050
        assert mock_client.embeddings.create.await_count == 2
        assert result[-1] == [1.0]

    @pytest.mark.asyncio
    async def test_long_input_truncated_at_word_boundary(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.5]]))

        with patch(_OPENAI_CLIENT, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(
                _settings(openai_embedding_model="BAAI/bge-base-en-v1.5")
            )
            await provider.embed(["word " * 1000])

        sent = mock_client.embeddings.create.await_args.kwargs["input"][0]
        assert len(sent) <= 512 * 3
        assert not sent.endswith(" ")

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.5] * 4]))

        with patch(_OPENAI_CLIENT, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed_single("hello")

        assert result == [0.5] * 4

    @pytest.mark.asyncio
    async def test_embed_error(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_api_error())

        with patch(_OPENAI_CLIENT, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError):
                await provider.embed(["hello"])


# ======================================================================
# Nomic Embedding Provider
# ======================================================================


class TestNomicEmbeddingProvider:
    def test_name_and_dimension(self) -> None:
        provider = NomicEmbeddingProvider(_settings())
        assert provider.get_provider_name() == "nomic_embedding"
        assert provider.get_dimension() == 768

    def test_available_when_ollama_answers(self) -> None:
        provider = NomicEmbeddingProvider(_settings())
        with patch(
            "docindex.providers.embedding.nomic_embedding_provider.httpx.get",
            return_value=MagicMock(status_code=200),
        ):
            assert provider.is_available() is True

    def test_unavailable_when_ollama_unreachable(self) -> None:
        provider = NomicEmbeddingProvider(_settings())
        with patch(
            "docindex.providers.embedding.nomic_embedding_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            assert provider.is_available() is False

    def test_unavailable_without_base_url(self) -> None:
        assert NomicEmbeddingProvider(_settings(ollama_base_url="")).is_available() is False

    @pytest.mark.asyncio
    async def test_embed(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.1], [0.2]]))

        with patch(_NOMIC_CLIENT, return_value=mock_client):
            provider = NomicEmbeddingProvider(_settings())
            result = await provider.embed(["a", "b"])

        assert result == [[0.1], [0.2]]
        assert mock_client.embeddings.create.await_args.kwargs["model"] == "nomic-embed-text"

    @pytest.mark.asyncio
    async def test_embed_error(self) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_api_error("down"))

        with patch(_NOMIC_CLIENT, return_value=mock_client):
            provider = NomicEmbeddingProvider(_settings())
            with pytest.raises(EmbeddingError):
                await provider.embed(["a"])
