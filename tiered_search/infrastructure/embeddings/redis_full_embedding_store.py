"""Redis-backed source of full-precision embeddings for phase-2 reranking.

Why: Phase 2 needs random access to a few dozen full vectors per query;
one pipelined MGET round trip per batch keeps that cheap. Vectors are
stored as raw little-endian float32 bytes under ``<prefix><id>``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

import numpy as np
import structlog

from tiered_search.application.ports.full_embedding_port import FullEmbeddingProvider
from tiered_search.domain.errors import EmbeddingProviderError
from tiered_search.domain.types import Vector

logger = structlog.get_logger()

_DTYPE = np.dtype("<f4")


@dataclass
class RedisConfig:
    """Configuration for Redis connection."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    key_prefix: str = "emb:full:"
    dimension: int = 768
    batch_size: int = 256


def encode_vector(vector: Sequence[float]) -> bytes:
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def decode_vector(raw: bytes) -> Vector:
    return tuple(float(x) for x in np.frombuffer(raw, dtype=_DTYPE))


class RedisFullEmbeddingStore(FullEmbeddingProvider):
    """Full embeddings by id from Redis.

    Ids without a stored vector (deleted) or with a vector of the wrong size
    map to None, so the reranker drops them.
    """

    def __init__(self, cfg: RedisConfig) -> None:
        """Initialize store.

        Raises:
            EmbeddingProviderError: If redis-py is not available or init fails
        """
        self._cfg = cfg
        self._client = self._init_client(cfg)

    def _init_client(self, cfg: RedisConfig) -> Any:
        try:
            redis = import_module("redis")
            return redis.Redis(
                host=cfg.host,
                port=cfg.port,
                db=cfg.db,
                password=cfg.password,
                decode_responses=False,
            )
        except Exception as ex:
            raise EmbeddingProviderError(f"Redis init failed: {ex}") from ex

    def _key(self, entry_id: str) -> str:
        return f"{self._cfg.key_prefix}{entry_id}"

    def __call__(self, ids: Sequence[str]) -> Mapping[str, Vector | None]:
        unique = list(dict.fromkeys(ids))
        out: dict[str, Vector | None] = {}
        size = max(1, self._cfg.batch_size)
        for i in range(0, len(unique), size):
            batch = unique[i : i + size]
            try:
                raws = self._client.mget([self._key(x) for x in batch])
            except Exception as ex:
                raise EmbeddingProviderError(f"mget failed: {ex}") from ex
            for entry_id, raw in zip(batch, raws, strict=True):
                out[entry_id] = self._decode(entry_id, raw)
        return out

    def _decode(self, entry_id: str, raw: bytes | None) -> Vector | None:
        if raw is None:
            return None
        if len(raw) != self._cfg.dimension * _DTYPE.itemsize:
            logger.warning(
                "full_embedding_wrong_size",
                id=entry_id,
                bytes=len(raw),
                expected_dimension=self._cfg.dimension,
            )
            return None
        return decode_vector(raw)

    def put(self, entry_id: str, vector: Sequence[float]) -> None:
        """Store one full embedding (tooling and fixtures).

        Raises:
            EmbeddingProviderError: If the vector has the wrong size or Redis fails
        """
        if len(vector) != self._cfg.dimension:
            raise EmbeddingProviderError(
                f"expected {self._cfg.dimension} dimensions, got {len(vector)}"
            )
        try:
            self._client.set(self._key(entry_id), encode_vector(vector))
        except Exception as ex:
            raise EmbeddingProviderError(f"set failed: {ex}") from ex

    def delete(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0
        try:
            return int(self._client.delete(*[self._key(x) for x in ids]))
        except Exception as ex:
            raise EmbeddingProviderError(f"delete failed: {ex}") from ex
