"""In-memory full-embedding provider for local runs and tests."""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence

from tiered_search.application.ports.full_embedding_port import FullEmbeddingProvider
from tiered_search.domain.types import Vector


class InMemoryFullEmbeddingStore(FullEmbeddingProvider):
    def __init__(self, vectors: Mapping[str, Sequence[float]] | None = None) -> None:
        self._lock = threading.Lock()
        self._vectors: dict[str, Vector] = {k: tuple(v) for k, v in (vectors or {}).items()}

    def put(self, entry_id: str, vector: Sequence[float]) -> None:
        with self._lock:
            self._vectors[entry_id] = tuple(vector)

    def delete(self, ids: Sequence[str]) -> int:
        with self._lock:
            return sum(1 for i in ids if self._vectors.pop(i, None) is not None)

    def __call__(self, ids: Sequence[str]) -> Mapping[str, Vector | None]:
        with self._lock:
            return {i: self._vectors.get(i) for i in ids}
