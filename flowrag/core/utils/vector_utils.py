"""Dense-vector helpers used by retrieval and postprocessing."""

import heapq
import math
from typing import List, Sequence, Tuple

from ..enumeration import SimilarityMode
from ..exceptions import DimMismatchError


def _check_dims(a: Sequence[float], b: Sequence[float]):
    if len(a) != len(b):
        raise DimMismatchError(f"vector dimensions differ: a.size={len(a)} b.size={len(b)}")


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    _check_dims(a, b)
    return sum(x * y for x, y in zip(a, b))


def magnitude(v: Sequence[float]) -> float:
    return math.sqrt(sum(x * x for x in v))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity `dot(a, b) / (|a| * |b|)`.

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimMismatchError: The vectors have different lengths.
    """
    dot = dot_product(a, b)
    norm_a = magnitude(a)
    norm_b = magnitude(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    _check_dims(a, b)
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def euclidean_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Map euclidean distance into (0, 1]; identical vectors score 1."""
    return 1.0 / (1.0 + euclidean_distance(a, b))


def similarity(a: Sequence[float], b: Sequence[float], mode: SimilarityMode = SimilarityMode.COSINE) -> float:
    if mode == SimilarityMode.DOT_PRODUCT:
        return dot_product(a, b)
    if mode == SimilarityMode.EUCLIDEAN:
        return euclidean_similarity(a, b)
    return cosine_similarity(a, b)


def normalize(v: Sequence[float]) -> List[float]:
    norm = magnitude(v)
    if norm == 0:
        return list(v)
    return [x / norm for x in v]


def top_k_similar(
    query: Sequence[float],
    vectors: List[Sequence[float]],
    k: int,
    mode: SimilarityMode = SimilarityMode.COSINE,
) -> Tuple[List[int], List[float]]:
    """Return indices and scores of the `k` vectors most similar to `query`.

    Ties are broken by the lower index.
    """
    scored = [(similarity(query, vector, mode), i) for i, vector in enumerate(vectors)]
    best = heapq.nsmallest(k, scored, key=lambda x: (-x[0], x[1]))
    return [i for _, i in best], [score for score, _ in best]
