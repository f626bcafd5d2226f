"""Search engine facade: one explicit value wiring both tiers and both phases.

Why: Interfaces (HTTP, CLI) need a single object to call; every dependency is
passed in, so there is no hidden global state and concurrent queries share
only read-only snapshots.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence

import structlog

from tiered_search.application.dto.search_dto import SearchRequest, SearchResponse
from tiered_search.application.ports.clock_port import ClockPort
from tiered_search.application.ports.cluster_index_port import ClusterIndexProvider
from tiered_search.application.ports.full_embedding_port import FullEmbeddingProvider
from tiered_search.application.ports.hot_index_port import HotIndexPort
from tiered_search.application.ports.partition_codec_port import PartitionCodecPort
from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.application.ports.telemetry_port import TelemetryPort
from tiered_search.application.use_cases.cold_vector_search import (
    ColdSearchConfig,
    ColdVectorSearch,
)
from tiered_search.application.use_cases.two_phase_search import (
    TwoPhaseConfig,
    TwoPhaseSearch,
    TwoPhaseSearchOptions,
    TwoPhaseStats,
)
from tiered_search.domain.errors import ClusterIndexError, DomainError, ValidationError
from tiered_search.domain.models import (
    ClusterIndex,
    DistanceMetric,
    IdentifiedCluster,
    PartitionMetadata,
    VectorEntry,
)
from tiered_search.domain.services.cluster_routing import (
    ClusterRoutingOptions,
    identify_relevant_clusters,
)
from tiered_search.domain.types import Result

logger = structlog.get_logger()


class SearchEngine:
    """Tiered two-phase vector search.

    Pipeline per query:
    1. Phase 1: hot index + cold partitions (cluster-routed), combined
    2. Phase 2: rerank the candidate pool with full embeddings (optional)
    3. Emit latency/outcome metrics
    """

    def __init__(
        self,
        store: PartitionStorePort,
        codec: PartitionCodecPort,
        cluster_index: ClusterIndex,
        hot_index: HotIndexPort | None = None,
        full_embeddings: FullEmbeddingProvider | None = None,
        telemetry: TelemetryPort | None = None,
        clock: ClockPort | None = None,
        cold_config: ColdSearchConfig | None = None,
        two_phase_config: TwoPhaseConfig | None = None,
        cluster_index_provider: ClusterIndexProvider | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            store: Object storage holding the partitions
            codec: Partition blob decoder
            cluster_index: Initial cluster index snapshot
            hot_index: Optional hot tier
            full_embeddings: Optional phase-2 vector source
            telemetry: Optional metrics sink
            clock: Optional clock (tests)
            cold_config: Cold search defaults
            two_phase_config: Candidate pool settings
            cluster_index_provider: Source used by reload_cluster_index
        """
        self.store = store
        self.telemetry = telemetry
        self.cluster_index_provider = cluster_index_provider
        self._monotonic = clock.monotonic if clock is not None else time.monotonic
        self.cold = ColdVectorSearch(
            store=store,
            codec=codec,
            cluster_index=cluster_index,
            config=cold_config,
            clock=clock,
            telemetry=telemetry,
        )
        self.two_phase = TwoPhaseSearch(
            hot_index=hot_index,
            cold_search=self.cold,
            full_embeddings=full_embeddings,
            config=two_phase_config,
            clock=clock,
            telemetry=telemetry,
        )

    @property
    def cluster_index(self) -> ClusterIndex:
        return self.cold.cluster_index

    def search(self, req: SearchRequest) -> Result[SearchResponse, DomainError]:
        """Execute one tiered search.

        Returns:
            Result with SearchResponse, or ValidationError for bad input,
            AllPartitionsFailedError when no cold partition answered and the
            hot tier had nothing either
        """
        start = self._monotonic()
        r = self.two_phase.search(
            req.query_embedding,
            TwoPhaseSearchOptions(
                top_k=req.top_k,
                candidate_pool_size=req.candidate_pool_size,
                namespace=req.namespace,
                type=req.type,
                metric=req.metric,
                use_hot=req.use_hot,
                use_cold=req.use_cold,
                rerank=req.rerank,
                timeout_s=req.timeout_s,
                max_clusters=req.max_clusters,
                min_cluster_similarity=req.min_cluster_similarity,
            ),
        )
        latency_ms = (self._monotonic() - start) * 1000.0

        if not r.ok:
            assert r.error is not None
            status = "invalid" if isinstance(r.error, ValidationError) else "error"
            self._emit(status, latency_ms)
            logger.warning("search_failed", error=str(r.error), error_type=type(r.error).__name__)
            return Result.failure(r.error)

        assert r.value is not None
        outcome = r.value
        status = "partial" if outcome.cold_metadata.deadline_exceeded else "ok"
        self._emit(status, latency_ms)
        logger.info(
            "search_completed",
            top_k=req.top_k,
            results=len(outcome.results),
            candidates=len(outcome.candidates),
            reranked=outcome.reranked,
            status=status,
            ms=round(latency_ms, 3),
        )
        return Result.success(
            SearchResponse(
                results=outcome.results,
                metadata=outcome.cold_metadata,
                candidates_considered=len(outcome.candidates),
                reranked=outcome.reranked,
                phase1_ms=outcome.phase1_ms,
                phase2_ms=outcome.phase2_ms,
            )
        )

    def route(
        self,
        query_embedding: Sequence[float],
        top_k: int | None = None,
        min_similarity: float | None = None,
        metric: DistanceMetric | None = None,
    ) -> Result[list[IdentifiedCluster], DomainError]:
        """Show which clusters a query would be routed to (no partition I/O)."""
        try:
            clusters = identify_relevant_clusters(
                query_embedding,
                self.cluster_index,
                ClusterRoutingOptions(top_k=top_k, min_similarity=min_similarity, metric=metric),
            )
        except ValidationError as ex:
            return Result.failure(ex)
        return Result.success(clusters)

    def inspect_partition(self, key: str) -> Result[PartitionMetadata | None, DomainError]:
        return self.store.head(key)

    def update_cluster_index(self, new_index: ClusterIndex) -> None:
        self.cold.update_cluster_index(new_index)

    def reload_cluster_index(self) -> Result[ClusterIndex, DomainError]:
        """Pull a fresh snapshot from the provider and swap it in."""
        if self.cluster_index_provider is None:
            return Result.failure(ClusterIndexError("no cluster index provider configured"))
        r = self.cluster_index_provider.load()
        if not r.ok:
            assert r.error is not None
            logger.error("cluster_index_reload_failed", error=str(r.error))
            return Result.failure(r.error)
        assert r.value is not None
        self.update_cluster_index(r.value)
        return Result.success(r.value)

    def add_to_hot_index(self, entries: Iterable[VectorEntry]) -> None:
        self.two_phase.add_to_hot_index(entries)

    def set_full_embedding_provider(self, provider: FullEmbeddingProvider | None) -> None:
        self.two_phase.set_full_embedding_provider(provider)

    def stats(self) -> TwoPhaseStats:
        return self.two_phase.get_stats()

    def _emit(self, status: str, latency_ms: float) -> None:
        if self.telemetry is None:
            return
        self.telemetry.incr("search.queries", {"status": status})
        self.telemetry.observe("search.latency_ms", latency_ms, {"status": status})
