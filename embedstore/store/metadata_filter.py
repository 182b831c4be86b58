"""Equality filtering over document metadata.

A filter is a flat mapping; a document matches when every filter key is
present in its metadata with an equal value.  There is no range, negation
or nested-path syntax.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from embedstore.models.document import VectorDocument


def _values_equal(expected: Any, actual: Any) -> bool:
    # Keep True from matching 1 (and False from matching 0): bool is an int
    # subclass, so plain == would conflate them.
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    return expected == actual


def matches_filter(document: VectorDocument, metadata_filter: Mapping[str, Any] | None) -> bool:
    """Return ``True`` if *document* satisfies every pair in *metadata_filter*.

    An empty or missing filter matches everything.  A document without
    metadata never matches a non-empty filter.
    """
    if not metadata_filter:
        return True
    if not document.metadata:
        return False

    metadata = document.metadata
    return all(
        key in metadata and _values_equal(value, metadata[key])
        for key, value in metadata_filter.items()
    )


def filter_by_metadata(
    documents: Iterable[VectorDocument],
    metadata_filter: Mapping[str, Any] | None,
) -> list[VectorDocument]:
    return [doc for doc in documents if matches_filter(doc, metadata_filter)]
