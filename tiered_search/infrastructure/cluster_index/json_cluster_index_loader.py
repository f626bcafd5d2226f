"""Cluster index snapshot stored as a JSON object next to the partitions.

Why: The external indexer publishes centroids and the cluster-to-partition
mapping as one immutable object; the engine loads it at startup and on
reload, and swaps the whole snapshot.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from tiered_search.application.ports.cluster_index_port import ClusterIndexProvider
from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.domain.errors import ClusterIndexError, DomainError
from tiered_search.domain.models import Cluster, ClusterIndex, DistanceMetric
from tiered_search.domain.types import Result

logger = structlog.get_logger()

DEFAULT_CLUSTER_INDEX_KEY = "cluster-index.json"


class ClusterSnapshot(BaseModel):
    cluster_id: str = Field(..., min_length=1)
    centroid: list[float] = Field(..., min_length=1)
    partition_key: str = Field(..., min_length=1)
    vector_count: int = Field(0, ge=0)
    extra_partition_keys: list[str] = Field(default_factory=list)


class ClusterIndexSnapshot(BaseModel):
    version: int = 1
    metric: DistanceMetric = DistanceMetric.COSINE
    created_at: float = 0.0
    updated_at: float = 0.0
    clusters: list[ClusterSnapshot] = Field(default_factory=list)


def parse_cluster_index(raw: bytes | str) -> ClusterIndex:
    """Parse and validate a JSON snapshot.

    Raises:
        ClusterIndexError: On malformed JSON, duplicate cluster ids or
            centroids of differing dimensions
    """
    try:
        snap = ClusterIndexSnapshot.model_validate_json(raw)
    except PydanticValidationError as ex:
        raise ClusterIndexError(f"invalid cluster index: {ex}") from ex

    ids = [c.cluster_id for c in snap.clusters]
    if len(set(ids)) != len(ids):
        raise ClusterIndexError("duplicate cluster ids in cluster index")
    dims = {len(c.centroid) for c in snap.clusters}
    if len(dims) > 1:
        raise ClusterIndexError(f"centroids have mixed dimensions {sorted(dims)}")

    return ClusterIndex(
        clusters=tuple(
            Cluster(
                cluster_id=c.cluster_id,
                centroid=tuple(c.centroid),
                partition_key=c.partition_key,
                vector_count=c.vector_count,
                extra_partition_keys=tuple(c.extra_partition_keys),
            )
            for c in snap.clusters
        ),
        metric=snap.metric,
        version=snap.version,
        created_at=snap.created_at,
        updated_at=snap.updated_at,
    )


def dump_cluster_index(index: ClusterIndex) -> bytes:
    snap = ClusterIndexSnapshot(
        version=index.version,
        metric=index.metric,
        created_at=index.created_at,
        updated_at=index.updated_at,
        clusters=[
            ClusterSnapshot(
                cluster_id=c.cluster_id,
                centroid=list(c.centroid),
                partition_key=c.partition_key,
                vector_count=c.vector_count,
                extra_partition_keys=list(c.extra_partition_keys),
            )
            for c in index.clusters
        ],
    )
    return snap.model_dump_json().encode()


class JsonClusterIndexLoader(ClusterIndexProvider):
    """Loads the cluster index snapshot from the partition store."""

    def __init__(self, store: PartitionStorePort, key: str = DEFAULT_CLUSTER_INDEX_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> Result[ClusterIndex, DomainError]:
        r = self.store.get(self.key)
        if not r.ok:
            assert r.error is not None
            return Result.failure(ClusterIndexError(f"cluster index fetch failed: {r.error}"))
        if r.value is None:
            return Result.failure(ClusterIndexError(f"cluster index '{self.key}' not found"))
        try:
            index = parse_cluster_index(r.value)
        except ClusterIndexError as ex:
            return Result.failure(ex)
        logger.info(
            "cluster_index_loaded",
            key=self.key,
            version=index.version,
            clusters=index.cluster_count,
            vectors=index.total_vectors,
        )
        return Result.success(index)
