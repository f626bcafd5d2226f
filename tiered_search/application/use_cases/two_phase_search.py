"""Two-phase search: coarse recall on cheap vectors, precise rerank on full ones.

Why: Truncated MRL vectors lose a little accuracy, so phase 1 over-fetches
candidates (top_k * over_fetch_factor) and phase 2 recomputes exact cosine
at full dimension. Phase 2 only reorders and filters the phase-1 set, so
its cost is bounded by the pool size, not by the corpus.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from tiered_search.application.ports.clock_port import ClockPort
from tiered_search.application.ports.full_embedding_port import FullEmbeddingProvider
from tiered_search.application.ports.hot_index_port import HotIndexPort
from tiered_search.application.ports.telemetry_port import TelemetryPort
from tiered_search.application.use_cases.cold_vector_search import (
    ColdSearchOptions,
    ColdVectorSearch,
)
from tiered_search.domain.errors import DomainError, ValidationError
from tiered_search.domain.models import (
    ColdSearchResult,
    DistanceMetric,
    MergedSearchResult,
    SearchMetadata,
    VectorEntry,
)
from tiered_search.domain.mrl import normalize, truncate_and_normalize, validate_dimensions
from tiered_search.domain.services.merging import MergeOptions, combine_tiered_results
from tiered_search.domain.services.reranking import rerank_with_full_embeddings
from tiered_search.domain.types import Result, Vector

logger = structlog.get_logger()

DEFAULT_OVER_FETCH_FACTOR = 5
DEFAULT_CANDIDATE_POOL_SIZE = 50


@dataclass(frozen=True)
class TwoPhaseConfig:
    """
    - over_fetch_factor:    candidate pool = top_k * factor when no pool size is given
    - candidate_pool_size:  fixed pool size; wins over the factor when set
    """

    over_fetch_factor: int = DEFAULT_OVER_FETCH_FACTOR
    candidate_pool_size: int | None = DEFAULT_CANDIDATE_POOL_SIZE


@dataclass(frozen=True)
class TwoPhaseSearchOptions:
    top_k: int
    candidate_pool_size: int | None = None
    namespace: str | None = None
    type: str | None = None
    metric: DistanceMetric | None = None
    use_hot: bool = True
    use_cold: bool = True
    rerank: bool = True
    timeout_s: float | None = None
    max_clusters: int | None = None
    min_cluster_similarity: float | None = None


@dataclass(frozen=True)
class TwoPhaseOutcome:
    results: list[MergedSearchResult]
    candidates: list[MergedSearchResult]
    cold_metadata: SearchMetadata
    phase1_ms: float
    phase2_ms: float
    reranked: bool


@dataclass(frozen=True)
class TwoPhaseStats:
    hot_index_size: int
    cold_index_size: int
    searches: int
    average_phase1_ms: float
    average_phase2_ms: float
    candidates_dropped: int


class TwoPhaseSearch:
    """Orchestrates phase 1 (hot and/or cold recall) and phase 2 (full rerank).

    Without a full-embedding provider the phase-1 ranking is returned as is.
    """

    def __init__(
        self,
        hot_index: HotIndexPort | None = None,
        cold_search: ColdVectorSearch | None = None,
        full_embeddings: FullEmbeddingProvider | None = None,
        config: TwoPhaseConfig | None = None,
        clock: ClockPort | None = None,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        self.hot_index = hot_index
        self.cold_search = cold_search
        self.full_embeddings = full_embeddings
        self.config = config or TwoPhaseConfig()
        self.telemetry = telemetry
        self._monotonic = clock.monotonic if clock is not None else time.monotonic
        self._stats_lock = threading.Lock()
        self._searches = 0
        self._phase1_total_ms = 0.0
        self._phase2_total_ms = 0.0
        self._dropped = 0

    def set_full_embedding_provider(self, provider: FullEmbeddingProvider | None) -> None:
        self.full_embeddings = provider

    def add_to_hot_index(self, entries: Iterable[VectorEntry]) -> None:
        if self.hot_index is None:
            raise ValidationError("no hot index configured")
        self.hot_index.add(entries)

    def remove_from_hot_index(self, ids: Iterable[str]) -> int:
        if self.hot_index is None:
            return 0
        return self.hot_index.remove(ids)

    def candidate_pool_size(self, top_k: int, requested: int | None = None) -> int:
        """Phase-1 pool size; never smaller than top_k."""
        if requested is not None:
            pool = requested
        elif self.config.candidate_pool_size is not None:
            pool = self.config.candidate_pool_size
        else:
            pool = top_k * self.config.over_fetch_factor
        return max(pool, top_k)

    def search(
        self, query_embedding: Vector, options: TwoPhaseSearchOptions
    ) -> Result[TwoPhaseOutcome, DomainError]:
        if options.top_k < 0:
            return Result.failure(ValidationError("top_k must be >= 0"))
        if not query_embedding:
            return Result.failure(ValidationError("query embedding must not be empty"))
        try:
            normalize(query_embedding)
        except ValidationError as ex:
            return Result.failure(ex)
        if options.top_k == 0:
            return Result.success(
                TwoPhaseOutcome(
                    results=[],
                    candidates=[],
                    cold_metadata=SearchMetadata(),
                    phase1_ms=0.0,
                    phase2_ms=0.0,
                    reranked=False,
                )
            )

        pool = self.candidate_pool_size(options.top_k, options.candidate_pool_size)

        t0 = self._monotonic()
        r_p1 = self.phase1(query_embedding, pool, options)
        if not r_p1.ok:
            assert r_p1.error is not None
            return Result.failure(r_p1.error)
        assert r_p1.value is not None
        candidates, cold_metadata = r_p1.value
        t1 = self._monotonic()

        reranked = False
        if options.rerank and self.full_embeddings is not None and candidates:
            r_p2 = self.phase2(query_embedding, candidates, options.top_k)
            if not r_p2.ok:
                assert r_p2.error is not None
                return Result.failure(r_p2.error)
            assert r_p2.value is not None
            results, reranked = r_p2.value
        else:
            results = candidates[: options.top_k]
        t2 = self._monotonic()

        phase1_ms = (t1 - t0) * 1000.0
        phase2_ms = (t2 - t1) * 1000.0
        self._record(phase1_ms, phase2_ms)
        logger.debug(
            "two_phase_search_completed",
            top_k=options.top_k,
            pool=pool,
            candidates=len(candidates),
            results=len(results),
            reranked=reranked,
        )
        return Result.success(
            TwoPhaseOutcome(
                results=results,
                candidates=candidates,
                cold_metadata=cold_metadata,
                phase1_ms=phase1_ms,
                phase2_ms=phase2_ms,
                reranked=reranked,
            )
        )

    def phase1(
        self, query_embedding: Vector, pool: int, options: TwoPhaseSearchOptions
    ) -> Result[tuple[list[MergedSearchResult], SearchMetadata], DomainError]:
        """Coarse recall: hot index and/or cold partitions, combined (cold wins)."""
        hot: list[MergedSearchResult] = []
        if options.use_hot and self.hot_index is not None:
            try:
                hot_query = self._hot_query(query_embedding, self.hot_index.dimension)
                hot = self.hot_index.search(
                    hot_query, pool, namespace=options.namespace, type=options.type
                )
            except ValidationError as ex:
                return Result.failure(ex)

        cold_metadata = SearchMetadata()
        cold: list[ColdSearchResult] = []
        if options.use_cold and self.cold_search is not None:
            r_cold = self.cold_search.search_with_metadata(
                ColdSearchOptions(
                    query_embedding=query_embedding,
                    limit=pool,
                    max_clusters=options.max_clusters,
                    cluster_similarity_threshold=options.min_cluster_similarity,
                    namespace=options.namespace,
                    type=options.type,
                    metric=options.metric,
                    timeout_s=options.timeout_s,
                )
            )
            if not r_cold.ok:
                assert r_cold.error is not None
                # hot results keep the query alive when cold fails outright
                if not hot:
                    return Result.failure(r_cold.error)
                logger.warning("cold_tier_unavailable", error=str(r_cold.error), hot=len(hot))
            else:
                assert r_cold.value is not None
                cold = r_cold.value.results
                cold_metadata = r_cold.value.metadata

        combined = combine_tiered_results(hot, cold, MergeOptions(limit=pool))
        return Result.success((combined, cold_metadata))

    def phase2(
        self, query_embedding: Vector, candidates: list[MergedSearchResult], top_k: int
    ) -> Result[tuple[list[MergedSearchResult], bool], DomainError]:
        """Precise rerank of the candidate set at full dimension.

        Returns (results, reranked). A failing provider degrades to the
        phase-1 ranking instead of failing the query.
        """
        assert self.full_embeddings is not None
        ids = [c.id for c in candidates]
        try:
            vectors = self.full_embeddings(ids)
        except Exception as ex:  # noqa: BLE001
            logger.warning("full_embedding_fetch_failed", error=str(ex), candidates=len(ids))
            if self.telemetry is not None:
                self.telemetry.incr("search.rerank.skipped", {"reason": type(ex).__name__})
            return Result.success((candidates[:top_k], False))

        try:
            results = rerank_with_full_embeddings(query_embedding, candidates, vectors, top_k)
        except ValidationError as ex:
            return Result.failure(ex)

        dropped = sum(1 for i in dict.fromkeys(ids) if vectors.get(i) is None)
        if dropped:
            logger.info("rerank_candidates_dropped", dropped=dropped, candidates=len(ids))
            with self._stats_lock:
                self._dropped += dropped
        return Result.success((results, True))

    def get_stats(self) -> TwoPhaseStats:
        with self._stats_lock:
            n = self._searches
            return TwoPhaseStats(
                hot_index_size=self.hot_index.size() if self.hot_index is not None else 0,
                cold_index_size=(
                    self.cold_search.cluster_index.total_vectors
                    if self.cold_search is not None
                    else 0
                ),
                searches=n,
                average_phase1_ms=self._phase1_total_ms / n if n else 0.0,
                average_phase2_ms=self._phase2_total_ms / n if n else 0.0,
                candidates_dropped=self._dropped,
            )

    @staticmethod
    def _hot_query(query_embedding: Vector, dim: int) -> Vector:
        if len(query_embedding) > dim:
            return truncate_and_normalize(query_embedding, dim)
        validate_dimensions(query_embedding, dim)
        return normalize(query_embedding)

    def _record(self, phase1_ms: float, phase2_ms: float) -> None:
        with self._stats_lock:
            self._searches += 1
            self._phase1_total_ms += phase1_ms
            self._phase2_total_ms += phase2_ms
        if self.telemetry is not None:
            self.telemetry.observe("search.phase1_ms", phase1_ms, {})
            self.telemetry.observe("search.phase2_ms", phase2_ms, {})
