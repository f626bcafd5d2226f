"""Cold-tier vector search over clustered object-storage partitions.

Why: Routing through cluster centroids bounds the number of partition
fetches; fan-out runs concurrently under a deadline and degrades to a
partial result instead of failing the query.

Pipeline:
1. Validate query (non-empty, non-zero)
2. Identify relevant clusters (centroid similarity, threshold, cap)
3. Fetch + scan each candidate partition concurrently
4. Collect whatever completed before the deadline
5. K-way merge into one ranked, id-unique list
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

import structlog

from tiered_search.application.partition_access import fetch_partition
from tiered_search.application.ports.clock_port import ClockPort
from tiered_search.application.ports.partition_codec_port import PartitionCodecPort
from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.application.ports.telemetry_port import TelemetryPort
from tiered_search.domain.errors import (
    AllPartitionsFailedError,
    DeadlineExceeded,
    DimensionMismatch,
    DomainError,
    PartitionDecodeError,
    ValidationError,
)
from tiered_search.domain.models import (
    ClusterIndex,
    ColdSearchResult,
    DistanceMetric,
    SearchMetadata,
    SearchResultWithMetadata,
)
from tiered_search.domain.mrl import normalize
from tiered_search.domain.services.cluster_routing import (
    ClusterRoutingOptions,
    identify_relevant_clusters,
)
from tiered_search.domain.services.merging import MergeOptions, merge_search_results
from tiered_search.domain.services.partition_search import (
    PartitionSearchOptions,
    search_within_partition,
)
from tiered_search.domain.types import Result, Vector

logger = structlog.get_logger()


@dataclass(frozen=True)
class ColdSearchConfig:
    """Defaults applied when a query does not override them."""

    max_clusters: int = 3
    cluster_similarity_threshold: float | None = 0.5
    default_limit: int = 10
    max_workers: int = 8
    timeout_s: float | None = None


DEFAULT_SEARCH_CONFIG = ColdSearchConfig()


@dataclass(frozen=True)
class ColdSearchOptions:
    query_embedding: Vector
    limit: int | None = None
    max_clusters: int | None = None
    cluster_similarity_threshold: float | None = None
    namespace: str | None = None
    type: str | None = None
    metric: DistanceMetric | None = None
    timeout_s: float | None = None


@dataclass
class _PartitionOutcome:
    partition_key: str
    cluster_id: str
    status: str  # "ok" | "missing" | "failed"
    results: list[ColdSearchResult] = field(default_factory=list)
    scanned: int = 0
    error: str = ""


class ColdVectorSearch:
    """Search vectors held in cold-storage partitions.

    The cluster index is a read-only snapshot; update_cluster_index swaps the
    reference and in-flight queries keep the snapshot they started with.
    """

    def __init__(
        self,
        store: PartitionStorePort,
        codec: PartitionCodecPort,
        cluster_index: ClusterIndex,
        config: ColdSearchConfig | None = None,
        clock: ClockPort | None = None,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.config = config or DEFAULT_SEARCH_CONFIG
        self.telemetry = telemetry
        self._cluster_index = cluster_index
        self._monotonic = clock.monotonic if clock is not None else time.monotonic

    @property
    def cluster_index(self) -> ClusterIndex:
        return self._cluster_index

    def update_cluster_index(self, new_index: ClusterIndex) -> None:
        self._cluster_index = new_index
        logger.info(
            "cluster_index_updated",
            version=new_index.version,
            clusters=new_index.cluster_count,
        )

    def search(self, options: ColdSearchOptions) -> Result[list[ColdSearchResult], DomainError]:
        r = self.search_with_metadata(options)
        if not r.ok:
            assert r.error is not None
            return Result.failure(r.error)
        assert r.value is not None
        return Result.success(r.value.results)

    def search_with_metadata(
        self, options: ColdSearchOptions
    ) -> Result[SearchResultWithMetadata, DomainError]:
        start = self._monotonic()
        index = self._cluster_index
        limit = options.limit if options.limit is not None else self.config.default_limit
        if limit < 0:
            return Result.failure(ValidationError("limit must be >= 0"))

        try:
            normalize(options.query_embedding)
            clusters = identify_relevant_clusters(
                options.query_embedding,
                index,
                ClusterRoutingOptions(
                    top_k=(
                        options.max_clusters
                        if options.max_clusters is not None
                        else self.config.max_clusters
                    ),
                    min_similarity=(
                        options.cluster_similarity_threshold
                        if options.cluster_similarity_threshold is not None
                        else self.config.cluster_similarity_threshold
                    ),
                    metric=options.metric,
                ),
            )
        except ValidationError as ex:
            return Result.failure(ex)

        targets = [
            (key, c.cluster_id)
            for c in clusters
            for key in (c.partition_keys or (c.partition_key,))
        ]
        if not targets or limit == 0:
            return Result.success(
                SearchResultWithMetadata(
                    results=[],
                    metadata=SearchMetadata(search_time_ms=self._elapsed_ms(start)),
                )
            )

        timeout_s = options.timeout_s if options.timeout_s is not None else self.config.timeout_s
        r_outcomes = self._fan_out(targets, options, limit, timeout_s, start)
        if not r_outcomes.ok:
            assert r_outcomes.error is not None
            return Result.failure(r_outcomes.error)
        assert r_outcomes.value is not None
        outcomes, pending = r_outcomes.value

        ok = [o for o in outcomes if o.status == "ok"]
        missing = tuple(o.partition_key for o in outcomes if o.status == "missing")
        failed = tuple(o.partition_key for o in outcomes if o.status == "failed")

        if pending:
            err = DeadlineExceeded(budget_s=timeout_s or 0.0, pending_partitions=pending)
            logger.warning("cold_search_deadline_exceeded", error=str(err), completed=len(outcomes))
            self._incr("search.deadline_exceeded")
        if missing:
            self._incr("search.partitions.missing", value=len(missing))
        if failed:
            self._incr("search.partitions.failed", value=len(failed))

        if not ok and failed and len(failed) == len(targets):
            logger.error("all_partitions_failed", partitions=list(failed))
            return Result.failure(AllPartitionsFailedError(failed_partitions=failed))

        merged = merge_search_results([o.results for o in ok], MergeOptions(limit=limit))
        searched = tuple(dict.fromkeys(o.cluster_id for o in ok))
        metadata = SearchMetadata(
            clusters_searched=searched,
            total_vectors_scanned=sum(o.scanned for o in ok),
            search_time_ms=self._elapsed_ms(start),
            missing_partitions=missing,
            failed_partitions=failed,
            deadline_exceeded=bool(pending),
        )
        logger.debug(
            "cold_search_completed",
            clusters=len(searched),
            scanned=metadata.total_vectors_scanned,
            results=len(merged),
            ms=round(metadata.search_time_ms, 3),
        )
        return Result.success(SearchResultWithMetadata(results=merged, metadata=metadata))

    # ===== Fan-out =====

    def _fan_out(
        self,
        targets: Sequence[tuple[str, str]],
        options: ColdSearchOptions,
        limit: int,
        timeout_s: float | None,
        start: float,
    ) -> Result[tuple[list[_PartitionOutcome], tuple[str, ...]], DomainError]:
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.config.max_workers, len(targets))),
            thread_name_prefix="partition-fanout",
        )
        futures: dict[Future[_PartitionOutcome], str] = {}
        try:
            for key, cluster_id in targets:
                fut = executor.submit(self._fetch_and_score, key, cluster_id, options, limit)
                futures[fut] = key

            remaining: float | None = None
            if timeout_s is not None:
                remaining = max(0.0, start + timeout_s - self._monotonic())
            done, not_done = wait(futures, timeout=remaining)

            outcomes: list[_PartitionOutcome] = []
            for fut in futures:
                if fut not in done:
                    continue
                exc = fut.exception()
                if exc is None:
                    outcomes.append(fut.result())
                elif isinstance(exc, ValidationError):
                    return Result.failure(exc)
                else:
                    logger.error(
                        "partition_search_crashed", partition_key=futures[fut], error=repr(exc)
                    )
                    outcomes.append(
                        _PartitionOutcome(
                            partition_key=futures[fut],
                            cluster_id="",
                            status="failed",
                            error=repr(exc),
                        )
                    )
            for fut in not_done:
                fut.cancel()
            pending = tuple(futures[f] for f in not_done)
            return Result.success((outcomes, pending))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _fetch_and_score(
        self, key: str, cluster_id: str, options: ColdSearchOptions, limit: int
    ) -> _PartitionOutcome:
        r_part = fetch_partition(self.store, self.codec, key)
        if not r_part.ok:
            return _PartitionOutcome(
                partition_key=key, cluster_id=cluster_id, status="failed", error=str(r_part.error)
            )
        if r_part.value is None:
            return _PartitionOutcome(partition_key=key, cluster_id=cluster_id, status="missing")

        vectors = r_part.value.vectors
        try:
            results = search_within_partition(
                options.query_embedding,
                vectors,
                PartitionSearchOptions(
                    limit=limit,
                    namespace=options.namespace,
                    type=options.type,
                    cluster_id=cluster_id,
                ),
            )
        except DimensionMismatch as ex:
            # entries the query cannot be compared with: the blob is unusable
            err = PartitionDecodeError(partition_key=key, detail=str(ex))
            logger.warning("partition_dimension_mismatch", partition_key=key, error=str(ex))
            return _PartitionOutcome(
                partition_key=key, cluster_id=cluster_id, status="failed", error=str(err)
            )
        return _PartitionOutcome(
            partition_key=key,
            cluster_id=cluster_id,
            status="ok",
            results=results,
            scanned=len(vectors),
        )

    # ===== Helpers =====

    def _elapsed_ms(self, start: float) -> float:
        return (self._monotonic() - start) * 1000.0

    def _incr(self, name: str, tags: dict[str, Any] | None = None, value: int = 1) -> None:
        if self.telemetry is not None:
            self.telemetry.incr(name, tags or {}, value=value)
