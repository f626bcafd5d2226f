# tiered_search/domain/services/partition_search.py
# Pure domain services: no I/O, deterministic, no external libraries.
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tiered_search.domain.errors import ValidationError, ZeroVectorError
from tiered_search.domain.models import ColdSearchResult, VectorEntry
from tiered_search.domain.mrl import (
    SUPPORTED_DIMENSIONS,
    cosine_similarity,
    magnitude,
    truncate_and_normalize,
    validate_dimensions,
)


@dataclass(frozen=True)
class PartitionSearchOptions:
    limit: int
    namespace: str | None = None
    type: str | None = None
    cluster_id: str = ""


def _matches(entry: VectorEntry, opts: PartitionSearchOptions) -> bool:
    if opts.namespace is not None and entry.namespace != opts.namespace:
        return False
    if opts.type is not None and entry.type != opts.type:
        return False
    return True


def search_within_partition(
    query_embedding: Sequence[float],
    vectors: Sequence[VectorEntry],
    options: PartitionSearchOptions,
) -> list[ColdSearchResult]:
    """
    Brute-force cosine scan over one partition.

    - O(n) in partition size; partitions are sized by ingestion to keep this cheap.
    - A longer query is truncated/re-normalized to a shorter (supported) entry dimension.
    - Results sorted by similarity descending (stable), truncated to options.limit.
    - Entries with a zero-magnitude embedding cannot be scored and are skipped.
    """
    if options.limit < 0:
        raise ValidationError("limit must be >= 0")
    if options.limit == 0 or not vectors:
        return []
    if magnitude(query_embedding) == 0.0:
        raise ZeroVectorError("query embedding has zero magnitude")

    prepared: dict[int, Sequence[float]] = {}
    results: list[ColdSearchResult] = []
    for entry in vectors:
        if not _matches(entry, options):
            continue
        dim = len(entry.embedding)
        q = prepared.get(dim)
        if q is None:
            if len(query_embedding) > dim and dim in SUPPORTED_DIMENSIONS:
                q = truncate_and_normalize(query_embedding, dim)
            else:
                validate_dimensions(query_embedding, dim)
                q = query_embedding
            prepared[dim] = q
        try:
            sim = cosine_similarity(q, entry.embedding)
        except ZeroVectorError:
            continue
        results.append(
            ColdSearchResult(
                id=entry.id,
                similarity=sim,
                entry=entry,
                cluster_id=options.cluster_id,
            )
        )

    results.sort(key=lambda r: r.similarity, reverse=True)
    return results[: options.limit]
