"""Abstract base class for text-embedding providers.

The store never talks to an embedding API directly.  It calls
:meth:`IEmbeddingProvider.embed` on whatever adapter it was given, so
OpenAI, an OpenAI-compatible host, a local Ollama model or a test double
are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (embedstore/providers/embedding/):
#   OpenAIEmbeddingProvider -- text-embedding-3-small or any OpenAI-compatible model
#   NomicEmbeddingProvider  -- nomic-embed-text via Ollama (local)
class IEmbeddingProvider(ABC):
    """Contract for the embedding capability consumed by the store."""

    @abstractmethod
    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  The batch orchestrator
            already chunks large inputs, so implementations receive at most
            the store's configured batch size per call.
        model:
            Model name to use for this call.  ``None`` means the provider's
            own default.

        Returns
        -------
        list[list[float]]
            Embedding vectors in the same order as *texts*.  Providers whose
            backend may reorder results must restore input order before
            returning.

        Raises
        ------
        embedstore.utils.errors.ProviderError
            If the embedding API call fails.
        """

    async def embed_single(self, text: str, model: str | None = None) -> list[float]:
        """Embed one text string, e.g. a search query."""
        result = await self.embed([text], model=model)
        return result[0]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the length of vectors produced by the default model.

        Example values: ``1536`` (``text-embedding-3-small``), ``768``
        (``nomic-embed-text``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error prefixes."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
