"""embedstore -- in-process vector store with similarity search and batch embedding.

Typical use::

    from embedstore import VectorStore

    store = VectorStore()
    await store.add_document({"id": "a", "content": "hi", "embedding": [1.0, 0.0]})
    best = await store.find_most_similar([1.0, 0.0])
"""

from embedstore.models import (
    PaginatedSearchResults,
    SearchOptions,
    SearchResult,
    SimilarityMethod,
    StoreConfig,
    StoreStats,
    VectorDocument,
)
from embedstore.store.vector_store import VectorStore
from embedstore.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    DuplicateIdError,
    EmbeddingTimeoutError,
    EmbedStoreError,
    InvalidQueryError,
    ProviderError,
    RateLimitError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "DuplicateIdError",
    "EmbedStoreError",
    "EmbeddingTimeoutError",
    "InvalidQueryError",
    "PaginatedSearchResults",
    "ProviderError",
    "RateLimitError",
    "SearchOptions",
    "SearchResult",
    "SimilarityMethod",
    "StoreConfig",
    "StoreStats",
    "ValidationError",
    "VectorDocument",
    "VectorStore",
]
