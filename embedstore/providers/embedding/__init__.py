"""Embedding provider implementations.

Two implementations of IEmbeddingProvider, in selection priority order:
    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) or any
       model on an OpenAI-compatible host.  Needs an API key.
    2. NomicEmbeddingProvider  -- nomic-embed-text via a local Ollama server
       (768 dims).  Free, but Ollama must be running.
"""

from __future__ import annotations

from embedstore.config.settings import Settings
from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from embedstore.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider


def build_embedding_provider(settings: Settings) -> IEmbeddingProvider | None:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if an API key is set) ->
    Nomic/Ollama (if reachable).  Returns ``None`` if neither is usable.
    """
    if settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=settings)
        if provider.is_available():
            return provider

    provider = NomicEmbeddingProvider(settings=settings)
    if provider.is_available():
        return provider

    return None


__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider", "build_embedding_provider"]
