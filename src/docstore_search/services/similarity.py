"""Vector similarity between query and document embeddings."""

import math
from typing import Iterable, Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity dot(a, b) / (|a| * |b|).

    Vectors of unequal length, empty vectors and zero-magnitude vectors all
    yield 0.0.
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))

    # float error can push |similarity| slightly past 1
    return max(-1.0, min(1.0, similarity))


def max_similarity(query: Sequence[float], vectors: Iterable[Sequence[float]]) -> float:
    """
    Highest similarity between the query and any of a document's vectors.

    A document may hold several passages; relevance to any one counts.
    Returns 0.0 when there are no vectors.
    """
    scores = [cosine_similarity(query, vector) for vector in vectors]
    return max(scores) if scores else 0.0
