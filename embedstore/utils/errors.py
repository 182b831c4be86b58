"""Custom exception hierarchy for embedstore.

All library exceptions inherit from :class:`EmbedStoreError`, which
carries an optional ``provider_name`` so error handlers can identify which
embedding backend (e.g. "openai_embedding", "nomic_embedding") caused the
failure.

The hierarchy is organized by the store operation that raises it:

    EmbedStoreError  (base -- catch-all for any embedstore error)
    +-- ValidationError          (malformed document, option or query)
    |   +-- InvalidQueryError    (empty query vector / query text)
    +-- DimensionMismatchError   (embedding length vs. table dimension)
    +-- DuplicateIdError         (batch id reused or already stored)
    +-- ProviderError            (embedding capability failed)
    |   +-- RateLimitError       (provider rate-limit exceeded, retryable)
    |   +-- EmbeddingTimeoutError (per-batch timeout, retryable)
    +-- ConfigurationError       (missing provider / invalid settings)

"Not found" is deliberately absent: ``update_document`` and
``remove_document`` report a missing id by returning ``False``.
"""

from __future__ import annotations


class EmbedStoreError(Exception):
    """Base exception for all embedstore errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which embedding backend triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets,
    e.g. ``[openai_embedding] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Document / query validation
# ---------------------------------------------------------------------------

class ValidationError(EmbedStoreError):
    """Raised when a document, option set or query is malformed."""

    def __init__(
        self,
        message: str = "Validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidQueryError(ValidationError):
    """Raised when a search query vector or query text is empty."""

    def __init__(
        self,
        message: str = "Query embedding must be provided and non-empty",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DimensionMismatchError(EmbedStoreError):
    """Raised when an embedding's length disagrees with the store dimension.

    Both lengths are kept on the exception (``actual`` / ``expected``) so
    callers can report them without parsing the message.
    """

    def __init__(
        self,
        actual: int,
        expected: int,
        message: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._actual = actual
        self._expected = expected
        if message is None:
            message = (
                f"Document embedding dimensions ({actual}) "
                f"don't match existing documents ({expected})"
            )
        super().__init__(message=message, provider_name=provider_name)

    @property
    def actual(self) -> int:
        return self._actual

    @property
    def expected(self) -> int:
        return self._expected


class DuplicateIdError(EmbedStoreError):
    """Raised when a batch reuses an id or collides with a stored document.

    ``second_index`` is ``None`` when the collision is with a document
    already in the store rather than within the batch itself.
    """

    def __init__(
        self,
        document_id: str,
        first_index: int,
        second_index: int | None = None,
        message: str | None = None,
    ) -> None:
        self._document_id = document_id
        self._first_index = first_index
        self._second_index = second_index
        if message is None:
            if second_index is None:
                message = (
                    f"Document ID '{document_id}' at index {first_index} "
                    "already exists in the store"
                )
            else:
                message = (
                    f"Duplicate document ID '{document_id}' found at indices "
                    f"{first_index} and {second_index}"
                )
        super().__init__(message=message)

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def first_index(self) -> int:
        return self._first_index

    @property
    def second_index(self) -> int | None:
        return self._second_index


# ---------------------------------------------------------------------------
# Embedding provider errors
# ---------------------------------------------------------------------------

class ProviderError(EmbedStoreError):
    """Raised when the embedding capability fails or returns bad vectors."""

    def __init__(
        self,
        message: str = "Embedding provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ProviderError):
    """Raised when the embedding API rate limit is exceeded.

    The batch orchestrator retries the failed batch with linear backoff
    before giving up.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingTimeoutError(ProviderError):
    """Raised when a single embedding batch exceeds its timeout."""

    def __init__(
        self,
        message: str = "Embedding request timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(EmbedStoreError):
    """Raised when configuration is invalid or a required provider is missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
