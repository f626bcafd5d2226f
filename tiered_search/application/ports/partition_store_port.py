"""Partition store port for object storage reads."""

from typing import Protocol, runtime_checkable

from tiered_search.domain.errors import DomainError
from tiered_search.domain.models import PartitionMetadata
from tiered_search.domain.types import Result


@runtime_checkable
class PartitionStorePort(Protocol):
    """Port for read access to cold-tier partition blobs."""

    def get(self, key: str) -> Result[bytes | None, DomainError]:
        """Get blob data by key. Success(None) when the key does not exist."""
        ...

    def head(self, key: str) -> Result[PartitionMetadata | None, DomainError]:
        """Get partition metadata without downloading the blob."""
        ...

    def list_keys(self, prefix: str = "") -> Result[list[str], DomainError]:
        """List partition keys under a prefix."""
        ...
