"""Batch embedding orchestration for document ingestion.

Stages for :meth:`BatchEmbeddingOrchestrator.add_documents`:
**validate -> partition -> embed (chunked) -> check dimensions -> zip -> write**.

Nothing touches the table until every embedding has been generated and
checked.  The write itself is all-or-nothing from the caller's point of
view: if any insert fails, documents written earlier in the same call are
removed again before the error propagates.

Rate limits are respected two ways: a fixed pause (``batch_delay_ms``)
between consecutive chunks, and linear backoff retries for chunks that time
out or hit a provider rate limit.  Both pauses use ``asyncio.sleep`` so
other tasks on the event loop keep running.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

import structlog

from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.models.config import StoreConfig
from embedstore.models.document import VectorDocument, coerce_document
from embedstore.store.document_table import DocumentTable, is_valid_embedding
from embedstore.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    DuplicateIdError,
    EmbeddingTimeoutError,
    EmbedStoreError,
    ProviderError,
    RateLimitError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)

# on_progress(processed, total); may be a plain function or a coroutine function.
ProgressCallback = Callable[[int, int], Any]
DocumentInput = VectorDocument | Mapping[str, Any]


class BatchEmbeddingOrchestrator:
    """Turns pending documents into complete ones and writes them atomically.

    Parameters
    ----------
    table:
        Destination table.  Read for duplicate / dimension checks, written
        only in the final step.
    embedding_provider:
        The embedding capability.  May be ``None`` if every document arrives
        with an embedding already.
    config:
        The owning store's live configuration; batch size, delay, model,
        timeout and retry values are read from it on every call.
    sleep:
        Awaitable pause used for inter-batch delays and retry backoff.
    """

    def __init__(
        self,
        table: DocumentTable,
        embedding_provider: IEmbeddingProvider | None,
        config: StoreConfig,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._table = table
        self._embedding_provider = embedding_provider
        self._config = config
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def add_documents(
        self,
        documents: Iterable[DocumentInput],
        *,
        create_embedding: bool = False,
        batch_size: int | None = None,
        batch_delay_ms: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Validate, embed where needed, and store *documents*.

        Returns
        -------
        int
            Number of documents written.

        Raises
        ------
        ValidationError
            Missing id, missing content / embedding, non-finite values.
        DuplicateIdError
            An id repeats within the batch or is already stored.
        DimensionMismatchError
            An embedding disagrees with the table or with the rest of the batch.
        ProviderError
            The embedding provider failed or returned unusable vectors.
        """
        docs = [coerce_document(doc) for doc in documents]
        if not docs:
            return 0

        batch_size = self._config.batch_size if batch_size is None else batch_size
        batch_delay_ms = self._config.batch_delay_ms if batch_delay_ms is None else batch_delay_ms
        if batch_size < 1:
            raise ValidationError(f"batch_size must be at least 1, got {batch_size}")
        if batch_delay_ms < 0:
            raise ValidationError(f"batch_delay_ms must not be negative, got {batch_delay_ms}")

        self._validate_batch(docs, create_embedding)

        # Partition: pending documents are embedded in their original order;
        # complete ones pass straight through.
        pending_indices = [i for i, doc in enumerate(docs) if doc.is_pending]
        if pending_indices and self._embedding_provider is None:
            raise ConfigurationError(
                "create_embedding requires an embedding provider, but none is configured"
            )

        complete = list(docs)
        if pending_indices:
            texts = [docs[i].content for i in pending_indices]
            embeddings = await self._generate_embeddings(
                texts, batch_size, batch_delay_ms, on_progress
            )
            self._check_generated_dimensions(embeddings)
            for index, embedding in zip(pending_indices, embeddings):
                complete[index] = docs[index].with_embedding(embedding)

        _check_batch_consistency(complete)
        written = self._write_all(complete)

        logger.info(
            "documents_added",
            count=written,
            embedded=len(pending_indices),
            dimension=self._table.dimension(),
        )
        return written

    async def add_document(
        self,
        document: DocumentInput,
        *,
        create_embedding: bool = False,
    ) -> VectorDocument:
        """Embed (if asked and needed) and insert a single document.

        Unlike :meth:`add_documents` this follows single-insert semantics: an
        existing document with the same id is replaced.
        """
        doc = coerce_document(document)

        if create_embedding and doc.is_pending:
            if not doc.id:
                raise ValidationError("Document must have an ID")
            if not doc.content.strip():
                raise ValidationError(
                    "Document must have non-empty content when create_embedding is enabled"
                )
            if self._embedding_provider is None:
                raise ConfigurationError(
                    "create_embedding requires an embedding provider, but none is configured"
                )
            (embedding,) = await self._embed_batch([doc.content], batch_number=1, batch_count=1)
            self._check_generated_dimensions([embedding])
            doc = doc.with_embedding(embedding)

        stored = self._table.insert(doc)
        logger.info("document_added", document_id=stored.id, dimension=len(stored.embedding))
        return stored

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_batch(self, docs: list[VectorDocument], create_embedding: bool) -> None:
        """Reject the whole batch before any provider call is made."""
        seen: dict[str, int] = {}
        expected = self._table.required_dimension()

        for index, doc in enumerate(docs):
            if not doc.id or not doc.id.strip():
                raise ValidationError(f"Document at index {index} must have a valid non-empty ID")
            if doc.id in seen:
                raise DuplicateIdError(doc.id, seen[doc.id], index)
            seen[doc.id] = index
            if self._table.contains(doc.id):
                raise DuplicateIdError(doc.id, index)

            label = f"Document at index {index} (ID: {doc.id})"
            if doc.is_pending:
                if not create_embedding:
                    raise ValidationError(
                        f"{label} must have an embedding when create_embedding is disabled"
                    )
                if not doc.content.strip():
                    raise ValidationError(
                        f"{label} must have non-empty content when create_embedding is enabled"
                    )
                continue

            if not is_valid_embedding(doc.embedding):
                raise ValidationError(
                    f"{label} has invalid embedding values. All values must be finite numbers"
                )
            length = len(doc.embedding)
            if expected is None:
                expected = length
            elif length != expected:
                raise DimensionMismatchError(
                    actual=length,
                    expected=expected,
                    message=(
                        f"{label} embedding dimensions ({length}) "
                        f"don't match existing documents ({expected})"
                    ),
                )

    def _check_generated_dimensions(self, embeddings: list[list[float]]) -> None:
        """Generated vectors must agree with each other and with the table."""
        if not embeddings:
            return
        generated = len(embeddings[0])
        for embedding in embeddings:
            if not is_valid_embedding(embedding):
                raise ProviderError(
                    "Embedding provider returned an empty or non-finite embedding",
                    provider_name=self._provider_name,
                )
            if len(embedding) != generated:
                raise ProviderError(
                    f"Generated embeddings have inconsistent dimensions "
                    f"({generated} and {len(embedding)})",
                    provider_name=self._provider_name,
                )

        expected = self._table.required_dimension()
        if expected is not None and generated != expected:
            raise DimensionMismatchError(
                actual=generated,
                expected=expected,
                message=(
                    f"Generated embedding dimensions ({generated}) "
                    f"don't match existing documents ({expected})"
                ),
            )

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def _generate_embeddings(
        self,
        texts: list[str],
        batch_size: int,
        batch_delay_ms: int,
        on_progress: ProgressCallback | None,
    ) -> list[list[float]]:
        """Embed *texts* chunk by chunk, preserving order.

        Any chunk failure aborts the whole call; vectors generated for
        earlier chunks are discarded with it.
        """
        total = len(texts)
        batch_count = math.ceil(total / batch_size)
        embeddings: list[list[float]] = []

        for batch_number, start in enumerate(range(0, total, batch_size), start=1):
            batch = texts[start : start + batch_size]
            logger.debug(
                "embedding_batch_start",
                batch=batch_number,
                batches=batch_count,
                size=len(batch),
            )
            embeddings.extend(await self._embed_batch(batch, batch_number, batch_count))
            logger.debug(
                "embedding_batch_complete",
                batch=batch_number,
                batches=batch_count,
                processed=len(embeddings),
                total=total,
            )
            await self._report_progress(on_progress, len(embeddings), total)

            if batch_number < batch_count and batch_delay_ms > 0:
                await self._sleep(batch_delay_ms / 1000)

        return embeddings

    async def _embed_batch(
        self, batch: list[str], batch_number: int, batch_count: int
    ) -> list[list[float]]:
        """Call the provider for one chunk, retrying timeouts and rate limits."""
        attempts = self._config.max_retries + 1
        timeout = self._config.embedding_timeout_s
        last_error: ProviderError | None = None

        for attempt in range(1, attempts + 1):
            try:
                call = self._embedding_provider.embed(batch, model=self._config.embedding_model)
                if timeout is not None:
                    vectors = await asyncio.wait_for(call, timeout=timeout)
                else:
                    vectors = await call
            except asyncio.TimeoutError as exc:
                last_error = EmbeddingTimeoutError(
                    f"Embedding batch {batch_number}/{batch_count} timed out after {timeout}s",
                    provider_name=self._provider_name,
                )
                last_error.__cause__ = exc
            except (RateLimitError, EmbeddingTimeoutError) as exc:
                last_error = exc
            except EmbedStoreError:
                logger.error("embedding_batch_failed", batch=batch_number, attempt=attempt)
                raise
            except Exception as exc:
                logger.error(
                    "embedding_batch_failed",
                    batch=batch_number,
                    attempt=attempt,
                    error=str(exc),
                )
                raise ProviderError(
                    f"Embedding batch {batch_number}/{batch_count} failed: {exc}",
                    provider_name=self._provider_name,
                ) from exc
            else:
                if len(vectors) != len(batch):
                    raise ProviderError(
                        f"Embedding provider returned {len(vectors)} embeddings "
                        f"for {len(batch)} texts",
                        provider_name=self._provider_name,
                    )
                return [list(vector) for vector in vectors]

            if attempt < attempts:
                backoff = self._config.retry_backoff_s * attempt
                logger.warning(
                    "embedding_batch_retry",
                    batch=batch_number,
                    attempt=attempt,
                    backoff_s=backoff,
                    error=str(last_error),
                )
                await self._sleep(backoff)

        logger.error(
            "embedding_batch_failed",
            batch=batch_number,
            attempts=attempts,
            error=str(last_error),
        )
        raise last_error

    async def _report_progress(
        self, on_progress: ProgressCallback | None, processed: int, total: int
    ) -> None:
        if on_progress is None:
            return
        try:
            result = on_progress(processed, total)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            logger.warning(
                "progress_callback_failed", processed=processed, total=total, error=str(exc)
            )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _write_all(self, docs: list[VectorDocument]) -> int:
        """Insert every document, undoing this call's inserts on failure."""
        inserted: list[str] = []
        try:
            for doc in docs:
                self._table.insert(doc)
                inserted.append(doc.id)
        except Exception:
            for document_id in reversed(inserted):
                self._table.remove(document_id)
            logger.warning("batch_write_rolled_back", rolled_back=len(inserted), total=len(docs))
            raise
        return len(inserted)

    @property
    def _provider_name(self) -> str | None:
        if self._embedding_provider is None:
            return None
        return self._embedding_provider.get_provider_name()


def _check_batch_consistency(docs: list[VectorDocument]) -> None:
    """Final guard: every document about to be written has the same length."""
    expected = len(docs[0].embedding)
    for doc in docs[1:]:
        if len(doc.embedding) != expected:
            raise DimensionMismatchError(
                actual=len(doc.embedding),
                expected=expected,
                message=(
                    f"Embedding dimensions across the batch are inconsistent "
                    f"({expected} and {len(doc.embedding)})"
                ),
            )
