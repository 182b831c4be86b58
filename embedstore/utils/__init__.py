"""Utility modules for embedstore.

- **errors** -- Exception hierarchy rooted at EmbedStoreError; each store
  operation raises its own subclass so callers can tell a malformed
  document from a dimension conflict or a failed provider call.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, structured JSON in production.
"""

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
from embedstore.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "DuplicateIdError",
    "EmbedStoreError",
    "EmbeddingTimeoutError",
    "InvalidQueryError",
    "ProviderError",
    "RateLimitError",
    "ValidationError",
    "configure_logging",
    "get_logger",
]
