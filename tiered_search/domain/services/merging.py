"""Pure functions for merging ranked result lists across partitions and tiers.

Functions:
- merge_search_results: k-way merge of per-partition lists, dedup by id
- combine_tiered_results: reconcile hot (approximate) and cold (precise) hits
"""

from __future__ import annotations

import heapq
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from tiered_search.domain.errors import ValidationError
from tiered_search.domain.models import ColdSearchResult, MergedSearchResult, SearchTier


class _Scored(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def similarity(self) -> float: ...


S = TypeVar("S", bound=_Scored)


@dataclass(frozen=True)
class MergeOptions:
    limit: int


def merge_search_results(
    partition_results: Sequence[Sequence[S]], options: MergeOptions
) -> list[S]:
    """Merge N lists, each already sorted by similarity descending.

    Uses a heap merge, so the cost is O(total * log N) and the loop stops as
    soon as ``limit`` unique ids are collected. Since the stream is globally
    descending, the first occurrence of an id is its maximum score.

    Args:
        partition_results: Per-partition ranked lists
        options: Merge options (limit)

    Returns:
        Globally sorted, id-unique list of at most ``limit`` results.

    Examples:
        >>> a = [Hit("x", 0.8), Hit("y", 0.5)]
        >>> b = [Hit("x", 0.6), Hit("z", 0.7)]
        >>> [h.id for h in merge_search_results([a, b], MergeOptions(limit=10))]
        ['x', 'z', 'y']
    """
    if options.limit < 0:
        raise ValidationError("limit must be >= 0")
    if options.limit == 0:
        return []

    merged: list[S] = []
    seen: set[str] = set()
    for result in heapq.merge(*partition_results, key=lambda r: r.similarity, reverse=True):
        if result.id in seen:
            continue
        seen.add(result.id)
        merged.append(result)
        if len(merged) >= options.limit:
            break
    return merged


def combine_tiered_results(
    hot_results: Sequence[MergedSearchResult],
    cold_results: Sequence[ColdSearchResult],
    options: MergeOptions,
) -> list[MergedSearchResult]:
    """Combine hot-tier and cold-tier hits into one ranked list.

    On an id collision the cold score and metadata always win, even when the
    hot score is higher. The hot entry's source rowid is kept for joining.
    """
    if options.limit < 0:
        raise ValidationError("limit must be >= 0")

    cold_by_id: dict[str, ColdSearchResult] = {}
    for cold in cold_results:
        prev = cold_by_id.get(cold.id)
        if prev is None or cold.similarity > prev.similarity:
            cold_by_id[cold.id] = cold

    combined: list[MergedSearchResult] = []
    hot_seen: set[str] = set()
    for hot in hot_results:
        if hot.id in hot_seen:
            continue
        hot_seen.add(hot.id)
        cold = cold_by_id.pop(hot.id, None)
        if cold is None:
            combined.append(hot)
            continue
        combined.append(
            MergedSearchResult(
                id=hot.id,
                similarity=cold.similarity,
                tier=SearchTier.COLD,
                source_rowid=hot.source_rowid or cold.entry.source_rowid,
                entry=cold.entry,
                cluster_id=cold.cluster_id,
                metadata=cold.entry.metadata,
            )
        )

    combined.extend(MergedSearchResult.from_cold(c) for c in cold_by_id.values())
    combined.sort(key=lambda r: r.similarity, reverse=True)
    return combined[: options.limit]
