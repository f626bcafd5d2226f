# tiered_search/domain/models.py
# Domain models must be pure (no I/O, no external libs)
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .types import Metadata, Score, Vector


class DistanceMetric(str, Enum):
    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT_PRODUCT = "dot_product"


class SearchTier(str, Enum):
    HOT = "hot"
    COLD = "cold"


@dataclass(frozen=True)
class VectorEntry:
    """
    Immutable record decoded from a cold-storage partition.

    - id:            unique within its namespace
    - namespace:     isolation scope (tenant/project)
    - type:          type tag of the source entity (None if untyped)
    - embedding:     full-precision embedding (768-d for the cold tier)
    - source_table:  table the embedded record came from ("things" | "relationships")
    - source_rowid:  rowid of the source record, used to join hot and cold hits
    - text_content:  original text that was embedded (may be None)
    - metadata:      typed, JSON-compatible key/value map
    """

    id: str
    namespace: str
    embedding: Vector
    type: str | None = None
    source_table: str = "things"
    source_rowid: int = 0
    text_content: str | None = None
    metadata: Metadata = field(default_factory=dict)


@dataclass(frozen=True)
class Cluster:
    """A published cluster: centroid plus the partition(s) holding its vectors."""

    cluster_id: str
    centroid: Vector
    partition_key: str
    vector_count: int = 0
    extra_partition_keys: tuple[str, ...] = ()

    @property
    def partition_keys(self) -> tuple[str, ...]:
        return (self.partition_key, *self.extra_partition_keys)


@dataclass(frozen=True)
class ClusterIndex:
    """Read-only snapshot of all clusters, replaced wholesale by the indexer."""

    clusters: tuple[Cluster, ...]
    metric: DistanceMetric = DistanceMetric.COSINE
    version: int = 1
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    @property
    def total_vectors(self) -> int:
        return sum(c.vector_count for c in self.clusters)


@dataclass(frozen=True)
class IdentifiedCluster:
    """Cluster selected for a query, with its similarity to that query."""

    cluster_id: str
    similarity: Score
    partition_key: str
    vector_count: int = 0
    partition_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class PartitionMetadata:
    cluster_id: str
    vector_count: int
    dimensionality: int
    compression_type: str = "snappy"
    size_bytes: int = 0
    created_at: float = 0.0


@dataclass(frozen=True)
class ParsedPartition:
    vectors: list[VectorEntry]
    metadata: PartitionMetadata


@dataclass(frozen=True)
class ColdSearchResult:
    """Hit from a full-dimension partition scan."""

    id: str
    similarity: Score
    entry: VectorEntry
    cluster_id: str = ""
    tier: SearchTier = SearchTier.COLD


@dataclass(frozen=True)
class MergedSearchResult:
    """Tier-agnostic hit returned to callers."""

    id: str
    similarity: Score
    tier: SearchTier
    source_rowid: int = 0
    entry: VectorEntry | None = None
    cluster_id: str | None = None
    metadata: Metadata = field(default_factory=dict)

    @staticmethod
    def from_cold(result: ColdSearchResult) -> MergedSearchResult:
        return MergedSearchResult(
            id=result.id,
            similarity=result.similarity,
            tier=SearchTier.COLD,
            source_rowid=result.entry.source_rowid,
            entry=result.entry,
            cluster_id=result.cluster_id,
            metadata=result.entry.metadata,
        )


@dataclass(frozen=True)
class SearchMetadata:
    """Diagnostics for one search, for debugging and monitoring."""

    clusters_searched: tuple[str, ...] = ()
    total_vectors_scanned: int = 0
    search_time_ms: float = 0.0
    missing_partitions: tuple[str, ...] = ()
    failed_partitions: tuple[str, ...] = ()
    deadline_exceeded: bool = False


@dataclass(frozen=True)
class SearchResultWithMetadata:
    results: list[ColdSearchResult]
    metadata: SearchMetadata
