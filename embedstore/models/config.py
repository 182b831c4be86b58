"""Per-store configuration value.

Each :class:`~embedstore.store.vector_store.VectorStore` owns its own
``StoreConfig`` copy.  The store's setter methods assign through pydantic
(``validate_assignment=True``), so a bad batch size or delay is rejected at
the point it is set rather than when the next batch runs.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY_MS = 0


class StoreConfig(BaseModel):
    """Embedding and batching defaults for one store instance."""

    model_config = ConfigDict(validate_assignment=True)

    embedding_model: str = Field(
        default=DEFAULT_EMBEDDING_MODEL,
        min_length=1,
        description="Model name passed to the embedding provider.",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        description="Texts per embedding call in add_documents().",
    )
    batch_delay_ms: int = Field(
        default=DEFAULT_BATCH_DELAY_MS,
        ge=0,
        description="Pause between embedding calls, in milliseconds.",
    )
    embedding_timeout_s: float | None = Field(
        default=30.0,
        gt=0,
        description="Per-batch timeout for the embedding call; None disables it.",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Extra attempts for a batch that timed out or was rate limited.",
    )
    retry_backoff_s: float = Field(
        default=1.0,
        ge=0,
        description="Base backoff; attempt N waits retry_backoff_s * N seconds.",
    )
    expected_dimension: int | None = Field(
        default=None,
        ge=1,
        description="Pre-declared embedding length; None infers it from the first document.",
    )
