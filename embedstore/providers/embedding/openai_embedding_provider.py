"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works against real OpenAI and OpenAI-compatible hosts (TogetherAI,
Fireworks, ...) via ``openai_base_url``.
"""

from __future__ import annotations

import openai
import structlog

from embedstore.config.settings import Settings
from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.utils.errors import EmbeddingTimeoutError, ProviderError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "intfloat/multilingual-e5-large-instruct": 1024,
}


def vectors_in_input_order(data: list) -> list[list[float]]:
    """Return embeddings from an embeddings response sorted by ``index``.

    The API does not promise to return items in input order.
    """
    return [list(item.embedding) for item in sorted(data, key=lambda item: item.index)]


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``openai_embedding_model`` (``text-embedding-3-small`` by default)
    unless a model is passed per call.  Inputs over the API's per-request
    limit are split transparently.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": settings.embedding_timeout_s,
            # Retries belong to the batch orchestrator.
            "max_retries": 0,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 768)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """Generate embedding vectors for *texts*, preserving input order."""
        if not texts:
            return []

        model_name = model or self._model
        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=model_name,
                )
                all_embeddings.extend(vectors_in_input_order(response.data))
                logger.info(
                    "openai_embedding_batch",
                    model=model_name,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._provider_label} rate limit exceeded: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APITimeoutError as exc:
            raise EmbeddingTimeoutError(
                message=f"{self._provider_label} timed out after {self._settings.embedding_timeout_s}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
