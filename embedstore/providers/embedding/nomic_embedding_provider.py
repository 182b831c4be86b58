"""Nomic embedding provider adapter (local, via Ollama).

Talks to the OpenAI-compatible ``/v1`` endpoint that Ollama exposes and
embeds with ``nomic-embed-text`` (768 dimensions).  No API key required.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from embedstore.config.settings import Settings
from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.providers.embedding.openai_embedding_provider import vectors_in_input_order
from embedstore.utils.errors import EmbeddingTimeoutError, ProviderError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OLLAMA_BATCH_LIMIT = 512
_NOMIC_MODEL = "nomic-embed-text"


class NomicEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by ``nomic-embed-text`` served by Ollama."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # Ollama ignores the key but the client requires one
            timeout=settings.embedding_timeout_s,
            max_retries=0,  # retries belong to the batch orchestrator
        )
        self._dimension = 768

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Embed *texts* in slices of 512.

        *model* is ignored unless it names a model Ollama serves; the store's
        default OpenAI model name is replaced by ``nomic-embed-text``.
        """
        if not texts:
            return []

        model_name = model if model and not model.startswith("text-embedding-") else _NOMIC_MODEL
        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OLLAMA_BATCH_LIMIT):
                batch = texts[start : start + _OLLAMA_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=model_name,
                )
                all_embeddings.extend(vectors_in_input_order(response.data))
                logger.info("nomic_embedding_batch", model=model_name, batch_size=len(batch))
            return all_embeddings
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"Nomic/Ollama embedding rate limited: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APITimeoutError as exc:
            raise EmbeddingTimeoutError(
                message=f"Nomic/Ollama embedding timed out: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"Nomic/Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_dimension(self) -> int:
        """Return 768 (nomic-embed-text dimension)."""
        return self._dimension

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers on ``/api/tags``."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
