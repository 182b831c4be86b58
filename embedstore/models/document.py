"""Document model for the embedding store.

A :class:`VectorDocument` exists in two variants:

* **pending** -- has ``content`` but no ``embedding`` yet; only ever seen
  on the way into :meth:`VectorStore.add_documents` with
  ``create_embedding=True``.
* **complete** -- carries an embedding whose length equals the store's
  dimension.  Every document held by a :class:`DocumentTable` is complete.

The model is frozen.  Timestamp stamping and embedding attachment produce
new instances via ``model_copy(update={...})``, and the table hands out
deep copies so callers never alias stored state.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from embedstore.utils.errors import ValidationError

# Metadata values are restricted to JSON scalars so equality filtering has
# one well-defined meaning.
MetadataValue = Union[str, int, float, bool, None]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class VectorDocument(BaseModel):
    """A document with its embedding vector and optional metadata.

    Validation of ``id`` and ``embedding`` contents happens in the store,
    not here, so that malformed documents surface as
    :class:`~embedstore.utils.errors.ValidationError` with a precise
    message instead of a generic pydantic error.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Unique identifier of the document.")
    content: str = Field(default="", description="Text content of the document.")
    embedding: tuple[float, ...] | None = Field(
        default=None,
        description="Embedding vector; None while the document is pending.",
    )
    metadata: dict[str, MetadataValue] | None = Field(
        default=None,
        description="Scalar metadata used for equality filtering.",
    )
    created_at: datetime | None = Field(
        default=None, description="Set once on first insert, never changed after."
    )
    updated_at: datetime | None = Field(
        default=None, description="Refreshed on every write."
    )

    @property
    def is_pending(self) -> bool:
        """``True`` while the document has no embedding (``None`` or empty)."""
        return not self.embedding

    def with_embedding(self, embedding: Sequence[float]) -> VectorDocument:
        """Return the complete variant of this document."""
        return self.model_copy(update={"embedding": tuple(float(v) for v in embedding)})

    def without_timestamps(self) -> VectorDocument:
        """Return a copy with both timestamps cleared (handy for comparisons)."""
        return self.model_copy(update={"created_at": None, "updated_at": None})


def coerce_document(document: VectorDocument | Mapping[str, Any]) -> VectorDocument:
    """Accept either a :class:`VectorDocument` or a plain mapping."""
    if isinstance(document, VectorDocument):
        return document
    try:
        return VectorDocument.model_validate(dict(document))
    except pydantic.ValidationError as exc:
        raise ValidationError(message=f"Invalid document: {exc}") from exc
