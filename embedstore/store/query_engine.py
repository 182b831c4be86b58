"""Linear-scan similarity search over a :class:`DocumentTable`.

Pipeline per query: **resolve -> filter -> score -> threshold -> sort -> paginate**.

Scoring problems are local to one document.  A stored vector whose length
differs from the query, or a score that overflows to a non-finite value,
is skipped with a warning so one bad entry cannot blank out the whole
result set.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

import structlog

from embedstore.interfaces.embedding_provider import IEmbeddingProvider
from embedstore.models.search import PaginatedSearchResults, SearchOptions, SearchResult
from embedstore.store.document_table import DocumentTable, is_valid_embedding
from embedstore.store.metadata_filter import matches_filter
from embedstore.store.similarity import get_similarity_function
from embedstore.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    InvalidQueryError,
    ProviderError,
)

logger = structlog.get_logger(logger_name=__name__)

Query = Sequence[float] | str


class QueryEngine:
    """Runs similarity searches against a document table.

    Parameters
    ----------
    table:
        The table to search.  The engine only reads from it.
    embedding_provider:
        Used to embed text queries.  Vector queries never touch it.
    model_getter:
        Returns the embedding model name to use for text queries; read per
        query so model changes on the owning store take effect immediately.
    """

    def __init__(
        self,
        table: DocumentTable,
        embedding_provider: IEmbeddingProvider | None = None,
        model_getter: Callable[[], str | None] | None = None,
    ) -> None:
        self._table = table
        self._embedding_provider = embedding_provider
        self._model_getter = model_getter or (lambda: None)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(self, query: Query, options: SearchOptions) -> list[SearchResult]:
        """Return results for *query*, paged or limited as *options* dictate."""
        ranked = await self._ranked(query, options)
        if options.page_size is not None:
            start = (options.page - 1) * options.page_size
            return _detached(ranked[start : start + options.page_size])
        return _detached(ranked[: options.limit])

    async def search_with_pagination(
        self, query: Query, options: SearchOptions
    ) -> PaginatedSearchResults:
        """Like :meth:`search`, but always paged and with totals attached.

        ``limit`` doubles as the page size when ``page_size`` is not set.
        """
        page_size = options.page_size or options.limit
        ranked = await self._ranked(query, options)

        start = (options.page - 1) * page_size
        total = len(ranked)
        return PaginatedSearchResults(
            items=_detached(ranked[start : start + page_size]),
            page=options.page,
            page_size=page_size,
            total_results=total,
            total_pages=math.ceil(total / page_size),
        )

    async def find_most_similar(self, query: Query, options: SearchOptions) -> SearchResult | None:
        single = options.model_copy(update={"limit": 1, "page_size": None})
        results = await self.search(query, single)
        return results[0] if results else None

    async def resolve_query(self, query: Query) -> list[float]:
        """Turn *query* into a vector, embedding it once if it is text."""
        if isinstance(query, str):
            if not query.strip():
                raise InvalidQueryError("Query text must be provided and non-empty")
            if self._embedding_provider is None:
                raise ConfigurationError(
                    "Text queries require an embedding provider; pass a query vector instead"
                )
            vector = await self._embedding_provider.embed_single(query, model=self._model_getter())
            if not is_valid_embedding(vector):
                raise ProviderError(
                    "Embedding provider returned an empty or non-finite query embedding",
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            return list(vector)

        if query is None or len(query) == 0:
            raise InvalidQueryError()
        if not is_valid_embedding(query):
            raise InvalidQueryError("Query embedding values must be finite numbers")
        return list(query)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _ranked(self, query: Query, options: SearchOptions) -> list[SearchResult]:
        """Run the full pipeline up to (not including) pagination.

        Results still reference the table's own documents; callers detach
        the slice they return.
        """
        query_vector = await self.resolve_query(query)
        if len(self._table) == 0:
            return []

        score = get_similarity_function(options.similarity_method)
        candidates = [
            doc
            for doc in self._table.iter_documents()
            if matches_filter(doc, options.metadata_filter)
        ]

        results: list[SearchResult] = []
        skipped = 0
        for document in candidates:
            embedding = document.embedding or ()
            if len(embedding) != len(query_vector):
                skipped += 1
                logger.warning(
                    "search_document_skipped",
                    document_id=document.id,
                    reason="dimension_mismatch",
                    query_dimensions=len(query_vector),
                    document_dimensions=len(embedding),
                )
                continue
            try:
                similarity = score(query_vector, embedding)
            except (ArithmeticError, ValueError, DimensionMismatchError) as exc:
                skipped += 1
                logger.warning("search_document_skipped", document_id=document.id, error=str(exc))
                continue
            if not math.isfinite(similarity):
                skipped += 1
                logger.warning(
                    "search_document_skipped",
                    document_id=document.id,
                    reason="non_finite_score",
                )
                continue
            if similarity >= options.threshold:
                results.append(SearchResult(document=document, similarity=similarity))

        # sorted() is stable with reverse=True, so equal scores keep
        # insertion order.
        ranked = sorted(results, key=lambda r: r.similarity, reverse=True)
        logger.debug(
            "search_complete",
            method=options.similarity_method.value,
            candidates=len(candidates),
            matched=len(ranked),
            skipped=skipped,
        )
        return ranked


def _detached(results: list[SearchResult]) -> list[SearchResult]:
    """Copy result documents so callers cannot mutate stored state."""
    return [
        SearchResult(document=r.document.model_copy(deep=True), similarity=r.similarity)
        for r in results
    ]
