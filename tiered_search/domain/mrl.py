"""Matryoshka (MRL) embedding math: truncation, normalization, similarity.

Why: MRL-trained embeddings keep coarse semantics in their leading
dimensions, so the hot tier can store a 256-d prefix of the 768-d vector.
A truncated prefix is only comparable in cosine space after re-normalizing,
hence truncate_and_normalize is the vocabulary for cross-tier comparison.

Pure functions, no I/O, no external libraries.
"""

from __future__ import annotations

from collections.abc import Sequence
from math import sqrt

from .errors import (
    DimensionMismatch,
    DimensionTooSmall,
    UnsupportedDimension,
    ZeroVectorError,
)
from .types import Score, Vector

SUPPORTED_DIMENSIONS: tuple[int, ...] = (64, 128, 256, 512, 768)
FULL_DIMENSION = 768
HOT_DIMENSION = 256


def truncate(embedding: Sequence[float], target_dim: int) -> Vector:
    """Take the first ``target_dim`` components of an MRL embedding.

    Args:
        embedding: Full (or longer) embedding
        target_dim: One of SUPPORTED_DIMENSIONS

    Returns:
        Leading ``target_dim`` components (no re-normalization)

    Raises:
        UnsupportedDimension: If target_dim is not a supported MRL dimension
        DimensionTooSmall: If the embedding is shorter than target_dim
    """
    if target_dim not in SUPPORTED_DIMENSIONS:
        raise UnsupportedDimension(dimension=target_dim, supported=SUPPORTED_DIMENSIONS)
    if len(embedding) < target_dim:
        raise DimensionTooSmall(dimension=len(embedding), target=target_dim)
    return tuple(float(x) for x in embedding[:target_dim])


def magnitude(vector: Sequence[float]) -> float:
    return sqrt(sum(x * x for x in vector))


def normalize(vector: Sequence[float]) -> Vector:
    """Scale a vector to unit L2 norm.

    Raises:
        ZeroVectorError: If the vector has zero magnitude
    """
    mag = magnitude(vector)
    if mag == 0.0:
        raise ZeroVectorError("cannot normalize a zero vector")
    return tuple(x / mag for x in vector)


def truncate_and_normalize(embedding: Sequence[float], target_dim: int) -> Vector:
    return normalize(truncate(embedding, target_dim))


def validate_dimensions(embedding: Sequence[float], expected: int) -> None:
    """Check an embedding has exactly ``expected`` components.

    Raises:
        DimensionMismatch: With both expected and actual lengths
    """
    if len(embedding) != expected:
        raise DimensionMismatch(
            expected=expected, actual=len(embedding), context="embedding dimension check"
        )


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise DimensionMismatch(expected=len(a), actual=len(b), context="dot_product")
    return sum(x * y for x, y in zip(a, b, strict=True))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise DimensionMismatch(expected=len(a), actual=len(b), context="euclidean_distance")
    return sqrt(sum((x - y) ** 2 for x, y in zip(a, b, strict=True)))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Score:
    """Compute cosine similarity between two vectors.

    Degenerate input raises instead of scoring 0.0.

    Returns:
        Cosine similarity in [-1, 1]

    Raises:
        DimensionMismatch: If the vectors differ in length
        ZeroVectorError: If either vector has zero magnitude
    """
    if len(a) != len(b):
        raise DimensionMismatch(expected=len(a), actual=len(b), context="cosine_similarity")
    dot = 0.0
    ma = 0.0
    mb = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        ma += x * x
        mb += y * y
    if ma == 0.0 or mb == 0.0:
        raise ZeroVectorError("cosine similarity is undefined for a zero vector")
    sim = dot / (sqrt(ma) * sqrt(mb))
    # clamp float drift so identical vectors never exceed 1.0
    return max(-1.0, min(1.0, sim))
