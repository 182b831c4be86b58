"""Pure similarity functions over equal-length float vectors.

Passing vectors of different lengths is a caller error; the query engine
checks lengths first and skips mismatched documents instead of calling in
here.  All functions are side-effect free.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from embedstore.models.search import SimilarityMethod
from embedstore.utils.errors import DimensionMismatchError

SimilarityFunction = Callable[[Sequence[float], Sequence[float]], float]


def _check_lengths(vec_a: Sequence[float], vec_b: Sequence[float]) -> None:
    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(
            actual=len(vec_b),
            expected=len(vec_a),
            message=f"Vectors must have the same dimensions ({len(vec_a)} vs {len(vec_b)})",
        )


def _dot(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    return math.fsum(a * b for a, b in zip(vec_a, vec_b))


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine of the angle between *vec_a* and *vec_b*, in [-1, 1].

    Returns ``0.0`` when either vector has zero magnitude.
    """
    _check_lengths(vec_a, vec_b)
    magnitude_a = math.sqrt(math.fsum(a * a for a in vec_a))
    magnitude_b = math.sqrt(math.fsum(b * b for b in vec_b))
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return _dot(vec_a, vec_b) / (magnitude_a * magnitude_b)


def euclidean_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """``1 / (1 + distance)``: 1.0 for identical vectors, towards 0 as they diverge."""
    _check_lengths(vec_a, vec_b)
    distance = math.sqrt(math.fsum((a - b) ** 2 for a, b in zip(vec_a, vec_b)))
    return 1.0 / (1.0 + distance)


def dot_product_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Raw dot product, no normalisation."""
    _check_lengths(vec_a, vec_b)
    return _dot(vec_a, vec_b)


_SIMILARITY_FUNCTIONS: dict[SimilarityMethod, SimilarityFunction] = {
    SimilarityMethod.COSINE: cosine_similarity,
    SimilarityMethod.EUCLIDEAN: euclidean_similarity,
    SimilarityMethod.DOT: dot_product_similarity,
}


def get_similarity_function(method: SimilarityMethod | str) -> SimilarityFunction:
    """Look up the scoring function for *method* (enum member or its string value)."""
    return _SIMILARITY_FUNCTIONS[SimilarityMethod(method)]


def calculate_similarity(
    vec_a: Sequence[float],
    vec_b: Sequence[float],
    method: SimilarityMethod | str = SimilarityMethod.COSINE,
) -> float:
    return get_similarity_function(method)(vec_a, vec_b)
