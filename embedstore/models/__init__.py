"""embedstore data models -- re-exports all public model classes.

    - config.py    -- StoreConfig, the per-store embedding/batching defaults
    - document.py  -- VectorDocument (pending / complete variants)
    - search.py    -- SimilarityMethod, SearchOptions, SearchResult,
                      PaginatedSearchResults, StoreStats
"""

from __future__ import annotations

from embedstore.models.config import StoreConfig
from embedstore.models.document import MetadataValue, VectorDocument, coerce_document
from embedstore.models.search import (
    PaginatedSearchResults,
    SearchOptions,
    SearchResult,
    SimilarityMethod,
    StoreStats,
)

__all__ = [
    "MetadataValue",
    "PaginatedSearchResults",
    "SearchOptions",
    "SearchResult",
    "SimilarityMethod",
    "StoreConfig",
    "StoreStats",
    "VectorDocument",
    "coerce_document",
]
