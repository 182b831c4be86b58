"""Keyed in-memory storage of complete documents.

The table enforces one invariant: every stored embedding has the same
length.  That length (the table *dimension*) is fixed by the first document
inserted -- or by ``expected_dimension`` when one is configured -- and is
forgotten again once the table becomes empty.

The table is single-writer: it holds no lock.  Concurrent writers must
serialise access themselves (``VectorStore`` does this with an
``asyncio.Lock`` around embedding-backed writes).
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime

import structlog

from embedstore.models.document import VectorDocument, utc_now
from embedstore.models.search import StoreStats
from embedstore.utils.errors import DimensionMismatchError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

# Memory estimate constants: 8 bytes per float64, 2 bytes per character of
# text (UTF-16 sizing), plus a flat per-document object overhead.
_BYTES_PER_COMPONENT = 8
_BYTES_PER_CHAR = 2
_DOCUMENT_OVERHEAD_BYTES = 100


def is_valid_embedding(embedding: Iterable[float] | None) -> bool:
    """``True`` if *embedding* is present, non-empty and all-finite."""
    if not embedding:
        return False
    return all(
        isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
        for value in embedding
    )


class DocumentTable:
    """Dictionary-backed document storage with dimension bookkeeping.

    Parameters
    ----------
    expected_dimension:
        Optional pre-declared embedding length.  When set, even the first
        insert into an empty table must match it.
    clock:
        Returns the timestamp used for ``created_at`` / ``updated_at``.
    """

    def __init__(
        self,
        expected_dimension: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._documents: dict[str, VectorDocument] = {}
        self._dimension: int | None = None
        self._expected_dimension = expected_dimension
        self._clock = clock

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_document(document: VectorDocument) -> None:
        """Raise :class:`ValidationError` if *document* cannot be stored."""
        if not document.id:
            raise ValidationError("Document must have an ID")
        if not document.embedding:
            raise ValidationError("Document must have a valid embedding")
        if not is_valid_embedding(document.embedding):
            raise ValidationError("All embedding values must be finite numbers")

    def required_dimension(self) -> int | None:
        """Length new embeddings must have, or ``None`` if anything goes."""
        if self._documents and self._dimension is not None:
            return self._dimension
        return self._expected_dimension

    def check_dimension(self, length: int) -> None:
        """Raise :class:`DimensionMismatchError` if *length* does not fit the table."""
        expected = self.required_dimension()
        if expected is not None and length != expected:
            raise DimensionMismatchError(actual=length, expected=expected)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(self, document: VectorDocument) -> VectorDocument:
        """Store *document*, silently replacing any document with the same id.

        Returns a copy of the stored document with timestamps applied.
        """
        self.validate_document(document)
        self.check_dimension(len(document.embedding))

        now = self._clock()
        stored = document.model_copy(
            update={"created_at": document.created_at or now, "updated_at": now},
            deep=True,
        )
        self._documents[stored.id] = stored
        if self._dimension is None:
            self._dimension = len(stored.embedding)
        logger.debug("document_inserted", document_id=stored.id, dimension=self._dimension)
        return stored.model_copy(deep=True)

    def insert_many(self, documents: Iterable[VectorDocument]) -> list[VectorDocument]:
        """Validate every document, then insert them all.

        Validation (including dimension agreement across the batch) runs to
        completion before the first write, so a bad document anywhere in the
        batch leaves the table untouched.
        """
        batch = list(documents)
        for document in batch:
            self.validate_document(document)

        expected = self.required_dimension()
        for document in batch:
            length = len(document.embedding)
            if expected is None:
                expected = length
            elif length != expected:
                raise DimensionMismatchError(actual=length, expected=expected)

        return [self.insert(document) for document in batch]

    def update(self, document: VectorDocument) -> bool:
        """Replace an existing document, keeping its original ``created_at``.

        Returns ``False`` (and changes nothing) if the id is not stored.
        """
        existing = self._documents.get(document.id)
        if existing is None:
            return False

        self.validate_document(document)
        self.check_dimension(len(document.embedding))

        self._documents[document.id] = document.model_copy(
            update={"created_at": existing.created_at, "updated_at": self._clock()},
            deep=True,
        )
        logger.debug("document_updated", document_id=document.id)
        return True

    def remove(self, document_id: str) -> bool:
        """Delete a document; ``False`` if it was not stored."""
        if self._documents.pop(document_id, None) is None:
            return False
        if not self._documents:
            self._dimension = None
        logger.debug("document_removed", document_id=document_id)
        return True

    def clear(self) -> None:
        """Remove every document and unset the dimension."""
        self._documents.clear()
        self._dimension = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, document_id: str) -> VectorDocument | None:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document is not None else None

    def contains(self, document_id: str) -> bool:
        return document_id in self._documents

    def dimension(self) -> int | None:
        """Embedding length shared by stored documents; ``None`` when empty."""
        return self._dimension if self._documents else None

    def iter_documents(self) -> Iterator[VectorDocument]:
        """Yield stored documents in insertion order.

        The yielded objects are the table's own instances; callers that hand
        them outward must copy them first.
        """
        yield from list(self._documents.values())

    def all_documents(self) -> list[VectorDocument]:
        return [document.model_copy(deep=True) for document in self._documents.values()]

    def stats(self) -> StoreStats:
        """Return document count, dimension and an estimated byte footprint."""
        estimated = 0
        for document in self._documents.values():
            metadata_json = json.dumps(
                document.metadata or {}, separators=(",", ":"), ensure_ascii=False
            )
            estimated += len(document.embedding or ()) * _BYTES_PER_COMPONENT
            estimated += len(document.content) * _BYTES_PER_CHAR
            estimated += len(metadata_json) * _BYTES_PER_CHAR
            estimated += _DOCUMENT_OVERHEAD_BYTES

        return StoreStats(
            document_count=len(self._documents),
            embedding_dimensions=self.dimension(),
            estimated_memory_usage=estimated,
        )

    def __len__(self) -> int:
        return len(self._documents)
