"""TF-IDF weighting and vector similarity helpers."""

from __future__ import annotations

import math
from typing import Mapping

import numpy as np


def euclidean_norm(frequency: Mapping[str, int]) -> float:
    """Square root of the sum of squared occurrence counts."""
    counts = np.fromiter(frequency.values(), dtype="float64", count=len(frequency))
    return float(np.sqrt(np.dot(counts, counts)))


def term_frequency(occurrences: int, norm: float) -> float:
    return occurrences / norm


def inverse_document_frequency(term_documents: int, total_documents: int) -> float:
    """Natural log of corpus size over documents containing the term."""
    return math.log(total_documents / term_documents)


def tf_idf(tf: float, idf: float) -> float:
    return tf * idf


def dot_product(query: Mapping[str, float], document: Mapping[str, float]) -> float:
    """Dot product over the document's dimensions; missing query terms weigh 0."""
    return sum(value * query.get(term, 0.0) for term, value in document.items())


def magnitude(vector: Mapping[str, float]) -> float:
    values = np.fromiter(vector.values(), dtype="float64", count=len(vector))
    return float(np.linalg.norm(values))


def cosine_similarity(query: Mapping[str, float], document: Mapping[str, float]) -> float:
    """Cosine of the angle between two sparse term vectors.

    Degenerate vectors (zero magnitude on either side) score 0.
    """
    denominator = magnitude(query) * magnitude(document)
    if denominator == 0.0:
        return 0.0
    return dot_product(query, document) / denominator
