"""Dependency injection container with environment-driven wiring.

Why: Single place for wiring; backend flags pick MinIO/Redis or the
in-memory adapters, and every other layer stays free of configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from tiered_search.application.ports import (
    ClockPort,
    ClusterIndexProvider,
    FullEmbeddingProvider,
    HotIndexPort,
    PartitionCodecPort,
    PartitionStorePort,
    TelemetryPort,
)
from tiered_search.config.settings import AppSettings
from tiered_search.domain.models import ClusterIndex

if TYPE_CHECKING:
    from tiered_search.application.use_cases.search_engine import SearchEngine

logger = structlog.get_logger()


class Container:
    """Dependency injection container for application components.

    Responsibilities:
    1. Read settings from environment (via AppSettings)
    2. Choose adapters based on settings (partition_backend, embedding_backend)
    3. Build the SearchEngine with its initial cluster index snapshot
    """

    def __init__(self, settings: AppSettings | None = None) -> None:
        self.settings = settings or AppSettings()
        self._partition_store: PartitionStorePort | None = None
        self._codec: PartitionCodecPort | None = None
        self._cluster_index_provider: ClusterIndexProvider | None = None
        self._hot_index: HotIndexPort | None = None
        self._full_embeddings: FullEmbeddingProvider | None = None
        self._full_embeddings_built = False
        self._telemetry: TelemetryPort | None = None
        self._clock: ClockPort | None = None
        self._engine: SearchEngine | None = None

    # ===== Adapters =====

    def get_partition_store(self) -> PartitionStorePort:
        if self._partition_store is None:
            self._partition_store = self._build_partition_store()
        return self._partition_store

    def get_codec(self) -> PartitionCodecPort:
        if self._codec is None:
            from tiered_search.infrastructure.codecs.parquet_partition_codec import (
                ParquetPartitionCodec,
            )

            self._codec = ParquetPartitionCodec(compression=self.settings.parquet_compression)
        return self._codec

    def get_cluster_index_provider(self) -> ClusterIndexProvider:
        if self._cluster_index_provider is None:
            from tiered_search.infrastructure.cluster_index.json_cluster_index_loader import (
                JsonClusterIndexLoader,
            )

            self._cluster_index_provider = JsonClusterIndexLoader(
                self.get_partition_store(), key=self.settings.cluster_index_key
            )
        return self._cluster_index_provider

    def get_hot_index(self) -> HotIndexPort:
        if self._hot_index is None:
            from tiered_search.infrastructure.hotindex.in_memory_hot_index import InMemoryHotIndex

            self._hot_index = InMemoryHotIndex(dimension=self.settings.hot_dimension)
        return self._hot_index

    def get_full_embeddings(self) -> FullEmbeddingProvider | None:
        """Phase-2 provider, or None when reranking is disabled."""
        if not self._full_embeddings_built:
            self._full_embeddings = self._build_full_embeddings()
            self._full_embeddings_built = True
        return self._full_embeddings

    def get_telemetry(self) -> TelemetryPort:
        if self._telemetry is None:
            self._telemetry = self._build_telemetry()
        return self._telemetry

    def get_clock(self) -> ClockPort:
        if self._clock is None:
            from tiered_search.infrastructure.time.system_clock import SystemClock

            self._clock = SystemClock()
        return self._clock

    # ===== Use Cases =====

    def get_engine(self) -> SearchEngine:
        """Build (once) the search engine with all dependencies."""
        if self._engine is None:
            self._engine = self._build_engine()
        return self._engine

    # ===== Private Builder Methods =====

    def _build_engine(self) -> SearchEngine:
        from tiered_search.application.use_cases.cold_vector_search import ColdSearchConfig
        from tiered_search.application.use_cases.search_engine import SearchEngine
        from tiered_search.application.use_cases.two_phase_search import TwoPhaseConfig

        s = self.settings
        provider = self.get_cluster_index_provider()
        r_index = provider.load()
        if r_index.ok:
            assert r_index.value is not None
            index = r_index.value
        else:
            # Start empty; POST /v1/index/reload picks up a later snapshot
            logger.warning("cluster_index_unavailable", error=str(r_index.error))
            index = ClusterIndex(clusters=())

        return SearchEngine(
            store=self.get_partition_store(),
            codec=self.get_codec(),
            cluster_index=index,
            hot_index=self.get_hot_index(),
            full_embeddings=self.get_full_embeddings(),
            telemetry=self.get_telemetry(),
            clock=self.get_clock(),
            cold_config=ColdSearchConfig(
                max_clusters=s.max_clusters,
                cluster_similarity_threshold=s.cluster_similarity_threshold,
                default_limit=s.default_limit,
                max_workers=s.fanout_workers,
                timeout_s=s.query_timeout_s,
            ),
            two_phase_config=TwoPhaseConfig(
                over_fetch_factor=s.over_fetch_factor,
                candidate_pool_size=s.candidate_pool_size,
            ),
            cluster_index_provider=provider,
        )

    def _build_partition_store(self) -> PartitionStorePort:
        """Build partition store based on settings.partition_backend.

        Supports: minio | s3 | memory
        """
        backend = self.settings.partition_backend

        if backend in ("minio", "s3"):
            from tiered_search.infrastructure.blobstores.minio_adapter import (
                MinioConfig,
                MinioPartitionStoreAdapter,
            )

            cfg = MinioConfig(
                endpoint=self.settings.minio_endpoint,
                access_key=self.settings.minio_access_key,
                secret_key=self.settings.minio_secret_key,
                bucket_name=self.settings.minio_bucket,
                secure=self.settings.minio_secure,
                region=self.settings.minio_region or None,
            )
            return MinioPartitionStoreAdapter(cfg)

        from tiered_search.infrastructure.blobstores.in_memory_adapter import (
            InMemoryPartitionStore,
        )

        return InMemoryPartitionStore()

    def _build_full_embeddings(self) -> FullEmbeddingProvider | None:
        """Build phase-2 provider based on settings.embedding_backend.

        Supports: redis | memory | none
        """
        backend = self.settings.embedding_backend

        if backend == "none":
            return None
        if backend == "redis":
            from tiered_search.infrastructure.embeddings.redis_full_embedding_store import (
                RedisConfig,
                RedisFullEmbeddingStore,
            )

            cfg = RedisConfig(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=self.settings.redis_password or None,
                key_prefix=self.settings.redis_key_prefix,
                dimension=self.settings.full_dimension,
            )
            return RedisFullEmbeddingStore(cfg)

        from tiered_search.infrastructure.embeddings.in_memory_embedding_store import (
            InMemoryFullEmbeddingStore,
        )

        return InMemoryFullEmbeddingStore()

    def _build_telemetry(self) -> TelemetryPort:
        """Build telemetry adapter based on settings.telemetry_enabled."""
        if not self.settings.telemetry_enabled:
            return self._build_noop_telemetry()

        from tiered_search.infrastructure.telemetry.otel_adapter import (
            OpenTelemetryAdapter,
            OtelConfig,
        )

        cfg = OtelConfig(
            service_name="tiered-search",
            otlp_endpoint=self.settings.otlp_endpoint or None,
            environment=self.settings.telemetry_environment,
            enable_console=False,
        )
        return OpenTelemetryAdapter(cfg)

    def _build_noop_telemetry(self) -> TelemetryPort:
        class NoopTelemetry:
            def incr(
                self, name: str, tags: dict[str, Any] | None = None, value: int = 1
            ) -> None:
                pass

            def observe(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
                pass

        return NoopTelemetry()


# ===== Convenience Functions =====


def build_container(settings: AppSettings | None = None) -> Container:
    """Build dependency injection container with settings.

    Example:
        >>> container = build_container()
        >>> engine = container.get_engine()
        >>> result = engine.search(SearchRequest(query_embedding=vec, top_k=10))
    """
    return Container(settings)
