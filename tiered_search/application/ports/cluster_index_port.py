"""Cluster index provider port (external indexer -> engine, read-only)."""

from typing import Protocol

from tiered_search.domain.errors import DomainError
from tiered_search.domain.models import ClusterIndex
from tiered_search.domain.types import Result


class ClusterIndexProvider(Protocol):
    def load(self) -> Result[ClusterIndex, DomainError]:
        """Load the current cluster index snapshot."""
        ...
