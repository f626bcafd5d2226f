# tiered_search/domain/services/cluster_routing.py
# Pure domain services: no I/O, deterministic, no external libraries.
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tiered_search.domain.errors import ValidationError
from tiered_search.domain.models import ClusterIndex, DistanceMetric, IdentifiedCluster
from tiered_search.domain.mrl import (
    cosine_similarity,
    dot_product,
    euclidean_distance,
    normalize,
    truncate_and_normalize,
    validate_dimensions,
)


@dataclass(frozen=True)
class ClusterRoutingOptions:
    """
    - top_k:           cap on the number of clusters returned (None = all)
    - min_similarity:  drop clusters scoring below this value (None = keep all)
    - metric:          per-query override of the index metric
    """

    top_k: int | None = None
    min_similarity: float | None = None
    metric: DistanceMetric | None = None


def metric_similarity(
    metric: DistanceMetric, a: Sequence[float], b: Sequence[float]
) -> float:
    """Score two equal-length vectors so that larger always means closer.

    Euclidean distance d is mapped to 1 / (1 + d).
    """
    if metric is DistanceMetric.COSINE:
        return cosine_similarity(a, b)
    if metric is DistanceMetric.DOT_PRODUCT:
        return dot_product(a, b)
    return 1.0 / (1.0 + euclidean_distance(a, b))


def _query_for_centroid(query: Sequence[float], dim: int, cache: dict[int, tuple[float, ...]]):
    if dim not in cache:
        if len(query) > dim:
            cache[dim] = truncate_and_normalize(query, dim)
        else:
            validate_dimensions(query, dim)
            cache[dim] = normalize(query)
    return cache[dim]


def identify_relevant_clusters(
    query_embedding: Sequence[float],
    cluster_index: ClusterIndex,
    options: ClusterRoutingOptions | None = None,
) -> list[IdentifiedCluster]:
    """
    Rank clusters by centroid similarity to bound the partitions fetched later.

    - Query is truncated and re-normalized to each centroid's dimension when longer.
    - Ties keep cluster index order (Python's sort is stable).
    - min_similarity filters before top_k caps.
    """
    opts = options or ClusterRoutingOptions()
    if opts.top_k is not None and opts.top_k < 0:
        raise ValidationError("top_k must be >= 0")
    if not cluster_index.clusters or opts.top_k == 0:
        return []

    metric = opts.metric or cluster_index.metric
    prepared: dict[int, tuple[float, ...]] = {}

    identified: list[IdentifiedCluster] = []
    for cluster in cluster_index.clusters:
        q = _query_for_centroid(query_embedding, len(cluster.centroid), prepared)
        sim = metric_similarity(metric, q, cluster.centroid)
        if opts.min_similarity is not None and sim < opts.min_similarity:
            continue
        identified.append(
            IdentifiedCluster(
                cluster_id=cluster.cluster_id,
                similarity=sim,
                partition_key=cluster.partition_key,
                vector_count=cluster.vector_count,
                partition_keys=cluster.partition_keys,
            )
        )

    identified.sort(key=lambda c: c.similarity, reverse=True)
    if opts.top_k is not None:
        return identified[: opts.top_k]
    return identified
