"""Application settings with environment-driven configuration.

Why: Single place that reads the environment; backends are switched by
flags so local runs need neither MinIO nor Redis.
"""

import os
from dataclasses import dataclass, field


def _opt_float(name: str, default: str = "") -> float | None:
    raw = os.getenv(name, default).strip()
    return float(raw) if raw else None


def _opt_int(name: str, default: str = "") -> int | None:
    raw = os.getenv(name, default).strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class AppSettings:
    """Application settings loaded from environment variables.

    This is the ONLY place where environment variables are read.
    All other layers receive settings via dependency injection.
    """

    # ===== Partition Storage =====
    partition_backend: str = field(
        default_factory=lambda: os.getenv("PARTITION_BACKEND", "memory").lower()
    )
    # Supported: "minio" | "memory"

    minio_endpoint: str = field(
        default_factory=lambda: os.getenv("MINIO_ENDPOINT", "localhost:9000")
    )
    minio_access_key: str = field(default_factory=lambda: os.getenv("MINIO_ACCESS_KEY", ""))
    minio_secret_key: str = field(default_factory=lambda: os.getenv("MINIO_SECRET_KEY", ""))
    minio_bucket: str = field(
        default_factory=lambda: os.getenv("MINIO_BUCKET", "vector-partitions")
    )
    minio_secure: bool = field(
        default_factory=lambda: os.getenv("MINIO_SECURE", "true").lower() == "true"
    )
    minio_region: str = field(default_factory=lambda: os.getenv("MINIO_REGION", ""))

    cluster_index_key: str = field(
        default_factory=lambda: os.getenv("CLUSTER_INDEX_KEY", "cluster-index.json")
    )
    parquet_compression: str = field(
        default_factory=lambda: os.getenv("PARQUET_COMPRESSION", "snappy").lower()
    )

    # ===== Full Embeddings (phase 2) =====
    embedding_backend: str = field(
        default_factory=lambda: os.getenv("EMBEDDING_BACKEND", "none").lower()
    )
    # Supported: "redis" | "memory" | "none"
    # "memory" starts empty and is only useful when filled in-process

    redis_host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    redis_port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    redis_db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    redis_password: str = field(default_factory=lambda: os.getenv("REDIS_PASSWORD", ""))
    redis_key_prefix: str = field(
        default_factory=lambda: os.getenv("REDIS_KEY_PREFIX", "emb:full:")
    )

    # ===== Dimensions =====
    hot_dimension: int = field(default_factory=lambda: int(os.getenv("HOT_DIMENSION", "256")))
    full_dimension: int = field(default_factory=lambda: int(os.getenv("FULL_DIMENSION", "768")))

    # ===== Search Tuning =====
    over_fetch_factor: int = field(
        default_factory=lambda: int(os.getenv("SEARCH_OVER_FETCH_FACTOR", "5"))
    )
    candidate_pool_size: int | None = field(
        default_factory=lambda: _opt_int("SEARCH_CANDIDATE_POOL_SIZE", "50")
    )
    # Empty = top_k * over_fetch_factor

    max_clusters: int = field(default_factory=lambda: int(os.getenv("SEARCH_MAX_CLUSTERS", "3")))
    cluster_similarity_threshold: float | None = field(
        default_factory=lambda: _opt_float("SEARCH_CLUSTER_SIMILARITY_THRESHOLD", "0.5")
    )
    # Empty = no threshold, only the max_clusters cap
    default_limit: int = field(
        default_factory=lambda: int(os.getenv("SEARCH_DEFAULT_LIMIT", "10"))
    )
    query_timeout_s: float | None = field(
        default_factory=lambda: _opt_float("SEARCH_QUERY_TIMEOUT_S")
    )
    fanout_workers: int = field(
        default_factory=lambda: int(os.getenv("SEARCH_FANOUT_WORKERS", "8"))
    )

    # ===== Telemetry Configuration =====
    telemetry_enabled: bool = field(
        default_factory=lambda: os.getenv("TELEMETRY_ENABLED", "false").lower() == "true"
    )
    otlp_endpoint: str = field(default_factory=lambda: os.getenv("OTLP_ENDPOINT", ""))
    telemetry_environment: str = field(
        default_factory=lambda: os.getenv("TELEMETRY_ENVIRONMENT", "production")
    )

    # ===== HTTP Server =====
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))

    # ===== Logging =====
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_json: bool = field(
        default_factory=lambda: os.getenv("LOG_FORMAT", "console").lower() == "json"
    )
