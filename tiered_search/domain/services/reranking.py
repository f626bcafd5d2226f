"""Pure domain functions for phase-2 precise reranking.

Why (SAM): Rescoring candidates against full-precision vectors is
deterministic and I/O free; the embedding fetch happens in the
application layer and hands the vectors in.

Functions:
- rerank_with_full_embeddings: exact cosine rescoring of a candidate set
- sort_by_scores_desc: Stable descending sort by scores
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import TypeVar

from tiered_search.domain.errors import ValidationError
from tiered_search.domain.models import MergedSearchResult, SearchTier
from tiered_search.domain.mrl import cosine_similarity
from tiered_search.domain.types import Vector

T = TypeVar("T")


def rerank_with_full_embeddings(
    query_embedding: Sequence[float],
    candidates: Sequence[MergedSearchResult],
    full_embeddings: Mapping[str, Vector | None],
    top_k: int,
) -> list[MergedSearchResult]:
    """Rescore candidates at full dimension and keep the best ``top_k``.

    - Candidates whose full vector is missing or None are dropped (deleted
      between index time and query time).
    - Only ids present in ``candidates`` can appear in the output; extra keys
      in ``full_embeddings`` are ignored.
    - Rescored hits are tagged as cold tier.

    Raises:
        ValidationError: If top_k is negative
        DimensionMismatch: If a full vector disagrees with the query length
    """
    if top_k < 0:
        raise ValidationError("top_k must be >= 0")

    rescored: list[MergedSearchResult] = []
    seen: set[str] = set()
    for cand in candidates:
        if cand.id in seen:
            continue
        seen.add(cand.id)
        full = full_embeddings.get(cand.id)
        if full is None:
            continue
        rescored.append(
            replace(
                cand,
                similarity=cosine_similarity(query_embedding, full),
                tier=SearchTier.COLD,
            )
        )

    ranked = sort_by_scores_desc(rescored, [r.similarity for r in rescored])
    return ranked[:top_k]


def sort_by_scores_desc(items: Sequence[T], scores: Sequence[float]) -> list[T]:
    """Stable sort (descending) by scores, pure & deterministic.

    Equal scores preserve original order, so phase-1 order breaks ties.

    Examples:
        >>> sort_by_scores_desc(["a", "b", "c"], [0.2, 0.9, 0.5])
        ['b', 'c', 'a']
    """
    pairs: list[tuple[float, T]] = list(zip(scores, items, strict=True))
    pairs.sort(key=lambda p: p[0], reverse=True)
    return [it for _, it in pairs]
