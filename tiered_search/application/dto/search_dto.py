# tiered_search/application/dto/search_dto.py
from __future__ import annotations

from dataclasses import dataclass

from tiered_search.domain.models import DistanceMetric, MergedSearchResult, SearchMetadata
from tiered_search.domain.types import Vector


@dataclass(frozen=True)
class SearchRequest:
    """
    DTO for one end-to-end tiered search.

    - query_embedding: full-dimension query vector (non-empty, non-zero)
    - top_k: number of results to return (0 yields an empty result)
    - namespace / type: optional exact-match filters
    - metric: cluster routing metric override (defaults to the index metric)
    - use_hot / use_cold: which tiers feed phase 1
    - rerank: run phase 2 when a full-embedding provider is configured
    - timeout_s: query budget; partitions still pending are reported, not awaited
    - max_clusters / min_cluster_similarity: routing overrides
    - candidate_pool_size: phase-1 pool override (clamped to >= top_k)
    """

    query_embedding: Vector
    top_k: int = 10
    namespace: str | None = None
    type: str | None = None
    metric: DistanceMetric | None = None
    use_hot: bool = True
    use_cold: bool = True
    rerank: bool = True
    timeout_s: float | None = None
    max_clusters: int | None = None
    min_cluster_similarity: float | None = None
    candidate_pool_size: int | None = None


@dataclass(frozen=True)
class SearchResponse:
    """Ranked results plus diagnostics for the query."""

    results: list[MergedSearchResult]
    metadata: SearchMetadata
    candidates_considered: int = 0
    reranked: bool = False
    phase1_ms: float = 0.0
    phase2_ms: float = 0.0
