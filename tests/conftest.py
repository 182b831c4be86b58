"""Shared pytest fixtures for the embedstore test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.models.config import StoreConfig
from embedstore.models.document import VectorDocument
from embedstore.store.vector_store import VectorStore

# ---------------------------------------------------------------------------
# Embedding provider doubles
# ---------------------------------------------------------------------------


def fake_vector(text: str, dimension: int = 3) -> list[float]:
    """Deterministic, non-zero vector derived from *text*."""
    base = float(len(text) + 1)
    return [base + i for i in range(dimension)]


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider double returning 3-dimensional vectors, one per text."""
    provider = MagicMock(spec=IEmbeddingProvider)

    async def _embed(texts: list[str], model: str | None = None) -> list[list[float]]:
        return [fake_vector(text) for text in texts]

    async def _embed_single(text: str, model: str | None = None) -> list[float]:
        return fake_vector(text)

    provider.embed = AsyncMock(side_effect=_embed)
    provider.embed_single = AsyncMock(side_effect=_embed_single)
    provider.get_dimension.return_value = 3
    provider.get_provider_name.return_value = "mock_embedding"
    provider.is_available.return_value = True
    return provider


# ---------------------------------------------------------------------------
# Documents and stores
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_documents() -> list[VectorDocument]:
    """Three complete documents: two on the x axis side, one orthogonal."""
    return [
        VectorDocument(
            id="doc1",
            content="First document",
            embedding=(1.0, 0.0, 0.0),
            metadata={"category": "A", "priority": 1},
        ),
        VectorDocument(
            id="doc2",
            content="Second document",
            embedding=(0.0, 1.0, 0.0),
            metadata={"category": "B", "priority": 2},
        ),
        VectorDocument(
            id="doc3",
            content="Third document",
            embedding=(0.9, 0.1, 0.0),
            metadata={"category": "A", "priority": 3},
        ),
    ]


@pytest.fixture
def fast_config() -> StoreConfig:
    """Store config with no delays or backoff so tests never really sleep."""
    return StoreConfig(batch_delay_ms=0, retry_backoff_s=0.0, embedding_timeout_s=5.0)


@pytest.fixture
def store(fast_config: StoreConfig) -> VectorStore:
    """Empty store without an embedding provider."""
    return VectorStore(config=fast_config)


@pytest.fixture
def embedding_store(mock_embedding_provider: MagicMock, fast_config: StoreConfig) -> VectorStore:
    """Empty store wired to the mock embedding provider."""
    return VectorStore(embedding_provider=mock_embedding_provider, config=fast_config)
