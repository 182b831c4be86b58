"""In-memory document storage and similarity search.

- **similarity**      -- cosine / euclidean / dot scoring functions
- **document_table**  -- keyed storage with the dimension invariant
- **metadata_filter** -- AND-of-equality metadata predicates
- **query_engine**    -- filter -> score -> threshold -> sort -> paginate
- **vector_store**    -- the public ``VectorStore`` facade
"""

from embedstore.store.document_table import DocumentTable
from embedstore.store.metadata_filter import filter_by_metadata, matches_filter
from embedstore.store.query_engine import QueryEngine
from embedstore.store.similarity import (
    calculate_similarity,
    cosine_similarity,
    dot_product_similarity,
    euclidean_similarity,
    get_similarity_function,
)
from embedstore.store.vector_store import VectorStore

__all__ = [
    "DocumentTable",
    "QueryEngine",
    "VectorStore",
    "calculate_similarity",
    "cosine_similarity",
    "dot_product_similarity",
    "euclidean_similarity",
    "filter_by_metadata",
    "get_similarity_function",
    "matches_filter",
]
