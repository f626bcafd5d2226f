"""Domain errors (typed) for tiered vector search.

Input errors (dimension, zero vector) fail fast. Partition-level errors are
soft: they are isolated per partition and only surface as a hard failure
when no partition contributed.
"""

from dataclasses import dataclass, field


class DomainError(Exception):
    """Base class for domain-specific errors."""


class ValidationError(DomainError):
    """Invalid input/domain state."""


@dataclass(frozen=True)
class DimensionMismatch(ValidationError):
    """Two vectors (or a vector and a configured dimension) disagree in length."""

    expected: int
    actual: int
    context: str = ""

    def __str__(self) -> str:
        prefix = f"{self.context}: " if self.context else ""
        return f"{prefix}expected {self.expected} dimensions, got {self.actual}"


@dataclass(frozen=True)
class UnsupportedDimension(ValidationError):
    """Truncation target is not one of the supported MRL dimensions."""

    dimension: int
    supported: tuple[int, ...] = ()

    def __str__(self) -> str:
        return f"unsupported MRL dimension {self.dimension} (supported: {list(self.supported)})"


@dataclass(frozen=True)
class DimensionTooSmall(ValidationError):
    """Embedding is shorter than the requested truncation target."""

    dimension: int
    target: int

    def __str__(self) -> str:
        return f"cannot truncate {self.dimension}-dim embedding to {self.target} dimensions"


class ZeroVectorError(ValidationError):
    """Vector has zero magnitude and therefore no direction."""


@dataclass(frozen=True)
class PartitionFetchError(DomainError):
    """Partition could not be fetched from object storage."""

    partition_key: str
    detail: str = ""

    def __str__(self) -> str:
        return f"partition '{self.partition_key}' fetch failed: {self.detail}"


class PartitionDecodeError(PartitionFetchError):
    """Partition blob was fetched but could not be decoded."""

    def __str__(self) -> str:
        return f"partition '{self.partition_key}' is malformed: {self.detail}"


@dataclass(frozen=True)
class AllPartitionsFailedError(DomainError):
    """Every candidate partition failed; nothing contributed to the result."""

    failed_partitions: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"all {len(self.failed_partitions)} candidate partitions failed"


@dataclass(frozen=True)
class DeadlineExceeded(DomainError):
    """Query budget elapsed before every partition responded.

    Recorded in search metadata; the partial result is still returned.
    """

    budget_s: float
    pending_partitions: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return (
            f"deadline of {self.budget_s:.3f}s exceeded with "
            f"{len(self.pending_partitions)} partitions pending"
        )


class ClusterIndexError(DomainError):
    """Cluster index snapshot missing or malformed."""


class EmbeddingProviderError(DomainError):
    """Full-embedding provider failed."""


class BlobStoreError(DomainError):
    """Error in object storage operations."""
