"""Search-side models: similarity methods, options, results and stats.

``SearchResult`` and ``PaginatedSearchResults`` are ephemeral -- produced
per query, never stored.  ``SearchOptions`` is validated once at the top of
the query pipeline so the engine itself works on known-good values.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from embedstore.models.document import MetadataValue, VectorDocument


class SimilarityMethod(str, Enum):  # noqa: UP042 (StrEnum needs 3.11)
    """Scoring functions available to the query engine."""

    COSINE = "cosine"        # dot / (|a| * |b|), 1 = same direction
    EUCLIDEAN = "euclidean"  # 1 / (1 + L2 distance), 1 = identical
    DOT = "dot"              # raw dot product, unbounded


class SearchOptions(BaseModel):
    """Configuration for a single similarity search.

    ``page_size`` switches the engine from "first ``limit`` results" to
    page slicing; ``page`` is 1-based and pages past the end are empty.
    """

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=10, ge=1, description="Max results when not paginating.")
    threshold: float = Field(default=0.0, description="Minimum score to keep a result.")
    similarity_method: SimilarityMethod = Field(default=SimilarityMethod.COSINE)
    metadata_filter: dict[str, MetadataValue] | None = Field(
        default=None, description="AND-of-equality filter over document metadata."
    )
    page: int = Field(default=1, ge=1, description="1-based page number.")
    page_size: int | None = Field(default=None, ge=1, description="Results per page.")


class SearchResult(BaseModel):
    """A stored document paired with its similarity score."""

    model_config = ConfigDict(frozen=True)

    document: VectorDocument
    similarity: float


class PaginatedSearchResults(BaseModel):
    """One page of search results plus the numbers needed to fetch the rest."""

    model_config = ConfigDict(frozen=True)

    items: list[SearchResult] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    total_results: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)


class StoreStats(BaseModel):
    """Snapshot of the store's size and an estimate of its memory footprint."""

    model_config = ConfigDict(frozen=True)

    document_count: int = Field(default=0, ge=0)
    embedding_dimensions: int | None = Field(default=None)
    estimated_memory_usage: int = Field(
        default=0, ge=0, description="Rough byte estimate, not a measurement."
    )
