"""In-memory hot tier: brute-force search over truncated MRL vectors.

Why: The hot tier holds recent/frequent entries at 256 dimensions, a third
of the full size, so a dense numpy matrix product over all of them stays
fast enough to act as phase-1 recall.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence

import numpy as np

from tiered_search.application.ports.hot_index_port import HotIndexPort
from tiered_search.domain.errors import DimensionMismatch, ValidationError
from tiered_search.domain.models import MergedSearchResult, SearchTier, VectorEntry
from tiered_search.domain.mrl import HOT_DIMENSION, normalize, truncate_and_normalize


class InMemoryHotIndex(HotIndexPort):
    """Thread-safe brute-force index; searches run on an immutable snapshot."""

    def __init__(self, dimension: int = HOT_DIMENSION) -> None:
        self._dimension = dimension
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[VectorEntry, np.ndarray]] = {}
        self._snapshot: tuple[list[VectorEntry], np.ndarray] | None = None

    @property
    def dimension(self) -> int:
        return self._dimension

    def add(self, entries: Iterable[VectorEntry]) -> None:
        """Index entries, replacing any with the same id.

        Raises:
            DimensionMismatch: If an embedding is shorter than the hot dimension
            ZeroVectorError: If an embedding has zero magnitude
        """
        prepared = [(e, self._reduce(e.embedding)) for e in entries]
        with self._lock:
            for entry, vec in prepared:
                self._entries[entry.id] = (entry, vec)
            self._snapshot = None

    def remove(self, ids: Iterable[str]) -> int:
        with self._lock:
            removed = sum(1 for i in ids if self._entries.pop(i, None) is not None)
            if removed:
                self._snapshot = None
        return removed

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def search(
        self,
        query_embedding: Sequence[float],
        top_k: int,
        namespace: str | None = None,
        type: str | None = None,
    ) -> list[MergedSearchResult]:
        """Cosine top-k; the query is normalized here, callers may pass any scale.

        Raises:
            ValidationError: If top_k is negative
            DimensionMismatch: If the query length is not the hot dimension
            ZeroVectorError: If the query has zero magnitude
        """
        if top_k < 0:
            raise ValidationError("top_k must be >= 0")
        if len(query_embedding) != self._dimension:
            raise DimensionMismatch(
                expected=self._dimension, actual=len(query_embedding), context="hot query"
            )
        entries, matrix = self._current()
        if top_k == 0 or not entries:
            return []

        mask = np.array(
            [
                (namespace is None or e.namespace == namespace) and (type is None or e.type == type)
                for e in entries
            ],
            dtype=bool,
        )
        candidates = np.flatnonzero(mask)
        if candidates.size == 0:
            return []

        q = np.asarray(normalize(query_embedding), dtype=np.float64)
        scores = matrix[candidates] @ q
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            MergedSearchResult(
                id=entries[candidates[i]].id,
                similarity=float(np.clip(scores[i], -1.0, 1.0)),
                tier=SearchTier.HOT,
                source_rowid=entries[candidates[i]].source_rowid,
                entry=entries[candidates[i]],
                metadata=entries[candidates[i]].metadata,
            )
            for i in order
        ]

    def _current(self) -> tuple[list[VectorEntry], np.ndarray]:
        with self._lock:
            if self._snapshot is None:
                items = list(self._entries.values())
                matrix = (
                    np.vstack([v for _, v in items])
                    if items
                    else np.empty((0, self._dimension), dtype=np.float64)
                )
                self._snapshot = ([e for e, _ in items], matrix)
            return self._snapshot

    def _reduce(self, embedding: Sequence[float]) -> np.ndarray:
        if len(embedding) > self._dimension:
            vec = truncate_and_normalize(embedding, self._dimension)
        elif len(embedding) == self._dimension:
            vec = normalize(embedding)
        else:
            raise DimensionMismatch(
                expected=self._dimension, actual=len(embedding), context="hot index entry"
            )
        return np.asarray(vec, dtype=np.float64)
