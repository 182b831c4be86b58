"""Public in-memory vector store.

:class:`VectorStore` is the facade callers use.  It owns one
:class:`DocumentTable` and wires it to a :class:`QueryEngine` (reads) and a
:class:`BatchEmbeddingOrchestrator` (embedding-backed writes).  All of its
state -- documents and configuration -- belongs to the instance; nothing is
shared between stores.

Example::

    store = VectorStore(embedding_provider=OpenAIEmbeddingProvider(Settings()))
    await store.add_documents(
        [{"id": "doc1", "content": "Hello world", "metadata": {"lang": "en"}}],
        create_embedding=True,
    )
    results = await store.search("greeting", metadata_filter={"lang": "en"})
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import pydantic
import structlog

from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.models.config import StoreConfig
from embedstore.models.document import VectorDocument, coerce_document
from embedstore.models.search import (
    PaginatedSearchResults,
    SearchOptions,
    SearchResult,
    SimilarityMethod,
    StoreStats,
)
from embedstore.services.batch_embedder import (
    BatchEmbeddingOrchestrator,
    DocumentInput,
    ProgressCallback,
)
from embedstore.store.document_table import DocumentTable
from embedstore.store.metadata_filter import filter_by_metadata
from embedstore.store.query_engine import Query, QueryEngine
from embedstore.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


class VectorStore:
    """In-memory document store with linear-scan similarity search.

    Parameters
    ----------
    embedding_provider:
        Optional embedding capability.  Needed only for
        ``create_embedding=True`` writes and for text queries.
    config:
        Embedding and batching defaults.  The store keeps its own copy.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider | None = None,
        config: StoreConfig | None = None,
    ) -> None:
        self._config = (config or StoreConfig()).model_copy()
        self._table = DocumentTable(expected_dimension=self._config.expected_dimension)
        self._query_engine = QueryEngine(
            self._table,
            embedding_provider=embedding_provider,
            model_getter=lambda: self._config.embedding_model,
        )
        self._orchestrator = BatchEmbeddingOrchestrator(
            self._table, embedding_provider, self._config
        )
        # Serialises embedding-backed writes: duplicate-id and dimension
        # checks are not atomic across the provider await.
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_document(
        self,
        document: DocumentInput,
        create_embedding: bool = False,
    ) -> VectorDocument:
        """Add one document, replacing any stored document with the same id.

        With ``create_embedding=True`` a document without an embedding has
        its ``content`` embedded first (one provider call).
        """
        async with self._write_lock:
            return await self._orchestrator.add_document(
                document, create_embedding=create_embedding
            )

    async def add_documents(
        self,
        documents: Iterable[DocumentInput],
        create_embedding: bool = False,
        batch_size: int | None = None,
        batch_delay: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Add a batch of new documents atomically.

        Parameters
        ----------
        documents:
            ``VectorDocument`` instances or plain mappings.  Ids must be unique
            within the batch and not yet stored.
        create_embedding:
            Embed the ``content`` of documents that lack an embedding.
        batch_size:
            Texts per provider call; defaults to :meth:`get_default_batch_size`.
        batch_delay:
            Milliseconds to pause between provider calls; defaults to
            :meth:`get_default_batch_delay`.
        on_progress:
            ``on_progress(processed, total)`` after each embedded chunk.

        Returns
        -------
        int
            Number of documents added.  On any error the store is unchanged.
        """
        async with self._write_lock:
            return await self._orchestrator.add_documents(
                documents,
                create_embedding=create_embedding,
                batch_size=batch_size,
                batch_delay_ms=batch_delay,
                on_progress=on_progress,
            )

    def update_document(self, document: DocumentInput) -> bool:
        """Replace a stored document, keeping its ``created_at``.

        Returns ``False`` if no document with that id exists.
        """
        doc = coerce_document(document)
        updated = self._table.update(doc)
        if updated:
            logger.info("document_updated", document_id=doc.id)
        return updated

    def remove_document(self, document_id: str) -> bool:
        removed = self._table.remove(document_id)
        if removed:
            logger.info("document_removed", document_id=document_id)
        return removed

    def clear(self) -> None:
        """Remove all documents; the embedding dimension becomes unset."""
        count = len(self._table)
        self._table.clear()
        logger.info("store_cleared", removed=count)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_document(self, document_id: str) -> VectorDocument | None:
        return self._table.get(document_id)

    def has_document(self, document_id: str) -> bool:
        return self._table.contains(document_id)

    def get_all_documents(self) -> list[VectorDocument]:
        return self._table.all_documents()

    def get_documents_by_metadata(self, metadata_filter: Mapping[str, Any]) -> list[VectorDocument]:
        return filter_by_metadata(self._table.all_documents(), metadata_filter)

    def size(self) -> int:
        return len(self._table)

    def is_empty(self) -> bool:
        return len(self._table) == 0

    def get_embedding_dimensions(self) -> int | None:
        return self._table.dimension()

    def get_stats(self) -> StoreStats:
        return self._table.stats()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query: Query,
        options: SearchOptions | None = None,
        **option_overrides: Any,
    ) -> list[SearchResult]:
        """Rank stored documents against *query* (a vector or text).

        Options may be given as a :class:`SearchOptions` or as keyword
        arguments (``limit``, ``threshold``, ``similarity_method``,
        ``metadata_filter``, ``page``, ``page_size``).

        Returns an empty list for an empty store.  Raises
        :class:`~embedstore.utils.errors.InvalidQueryError` for an empty query.
        """
        return await self._query_engine.search(query, _build_options(options, option_overrides))

    async def search_with_pagination(
        self,
        query: Query,
        options: SearchOptions | None = None,
        **option_overrides: Any,
    ) -> PaginatedSearchResults:
        return await self._query_engine.search_with_pagination(
            query, _build_options(options, option_overrides)
        )

    async def find_most_similar(
        self,
        query: Query,
        similarity_method: SimilarityMethod | str = SimilarityMethod.COSINE,
    ) -> SearchResult | None:
        """Best single match for *query*, or ``None`` if nothing scores."""
        options = _build_options(None, {"similarity_method": similarity_method})
        return await self._query_engine.find_most_similar(query, options)

    # ------------------------------------------------------------------
    # Configuration accessors
    # ------------------------------------------------------------------

    def get_embedding_model(self) -> str:
        return self._config.embedding_model

    def set_embedding_model(self, model: str) -> None:
        self._set_config("embedding_model", model)

    def get_default_batch_size(self) -> int:
        return self._config.batch_size

    def set_default_batch_size(self, batch_size: int) -> None:
        self._set_config("batch_size", batch_size)

    def get_default_batch_delay(self) -> int:
        """Default pause between embedding calls, in milliseconds."""
        return self._config.batch_delay_ms

    def set_default_batch_delay(self, batch_delay: int) -> None:
        self._set_config("batch_delay_ms", batch_delay)

    def _set_config(self, field: str, value: Any) -> None:
        try:
            setattr(self._config, field, value)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid value for {field}: {value!r}") from exc


def _build_options(options: SearchOptions | None, overrides: dict[str, Any]) -> SearchOptions:
    """Merge keyword overrides onto *options*, re-raising bad values as ValidationError."""
    try:
        if options is None:
            return SearchOptions(**overrides)
        if overrides:
            return SearchOptions(**{**options.model_dump(), **overrides})
        return options
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid search options: {exc}") from exc
