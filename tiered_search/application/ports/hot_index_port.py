from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from tiered_search.domain.models import MergedSearchResult, VectorEntry


@runtime_checkable
class HotIndexPort(Protocol):
    """Fast approximate index over reduced-dimension vectors."""

    @property
    def dimension(self) -> int: ...

    def add(self, entries: Iterable[VectorEntry]) -> None:
        """Index entries; full embeddings are reduced to ``dimension``."""
        ...

    def remove(self, ids: Iterable[str]) -> int:
        """Drop entries by id, returns how many were present."""
        ...

    def search(
        self,
        query_embedding: Sequence[float],
        top_k: int,
        namespace: str | None = None,
        type: str | None = None,
    ) -> list[MergedSearchResult]: ...

    def size(self) -> int: ...
