"""In-memory partition store for local runs and tests."""

from __future__ import annotations

import threading

from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.domain.errors import DomainError
from tiered_search.domain.models import PartitionMetadata
from tiered_search.domain.types import Result


class InMemoryPartitionStore(PartitionStorePort):
    """Dict-backed store with the same contract as the MinIO adapter."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._meta: dict[str, PartitionMetadata] = {}
        self._lock = threading.Lock()

    def put(
        self, key: str, data: bytes, meta: PartitionMetadata | None = None
    ) -> Result[str, DomainError]:
        with self._lock:
            self._blobs[key] = data
            if meta is not None:
                self._meta[key] = meta
            else:
                self._meta.pop(key, None)
        return Result.success(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._blobs.pop(key, None)
            self._meta.pop(key, None)

    def get(self, key: str) -> Result[bytes | None, DomainError]:
        with self._lock:
            return Result.success(self._blobs.get(key))

    def head(self, key: str) -> Result[PartitionMetadata | None, DomainError]:
        with self._lock:
            data = self._blobs.get(key)
            if data is None:
                return Result.success(None)
            meta = self._meta.get(key)
        if meta is None:
            meta = PartitionMetadata(cluster_id="", vector_count=0, dimensionality=0)
        return Result.success(
            PartitionMetadata(
                cluster_id=meta.cluster_id,
                vector_count=meta.vector_count,
                dimensionality=meta.dimensionality,
                compression_type=meta.compression_type,
                size_bytes=len(data),
                created_at=meta.created_at,
            )
        )

    def list_keys(self, prefix: str = "") -> Result[list[str], DomainError]:
        with self._lock:
            return Result.success(sorted(k for k in self._blobs if k.startswith(prefix)))
