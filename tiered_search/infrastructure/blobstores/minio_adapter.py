"""MinIO partition store adapter for cold-tier partitions.

Why: Partitions are immutable blobs in S3-compatible object storage; the
engine only reads them. A missing key is a normal outcome (stale cluster
mapping after compaction) and maps to success(None).
"""

from dataclasses import dataclass
from importlib import import_module
from io import BytesIO
from typing import Any

from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.domain.errors import BlobStoreError, DomainError
from tiered_search.domain.models import PartitionMetadata
from tiered_search.domain.types import Result

_MISSING_CODES = frozenset({"NoSuchKey", "NoSuchObject", "ResourceNotFound"})
_META_PREFIX = "x-amz-meta-"


@dataclass
class MinioConfig:
    """Configuration for MinIO client."""

    endpoint: str
    access_key: str
    secret_key: str
    bucket_name: str = "vector-partitions"
    secure: bool = True
    region: str | None = None
    create_bucket: bool = False


def partition_metadata_to_headers(meta: PartitionMetadata) -> dict[str, str]:
    """Flatten partition metadata into S3 user metadata (string values)."""
    return {
        "cluster-id": meta.cluster_id,
        "vector-count": str(meta.vector_count),
        "dimensionality": str(meta.dimensionality),
        "compression-type": meta.compression_type,
        "created-at": str(meta.created_at),
    }


def partition_metadata_from_headers(
    headers: Any, size_bytes: int, default_cluster_id: str = ""
) -> PartitionMetadata:
    """Inverse of partition_metadata_to_headers; tolerates absent fields."""
    meta: dict[str, str] = {}
    for k, v in dict(headers or {}).items():
        name = str(k).lower()
        if name.startswith(_META_PREFIX):
            name = name[len(_META_PREFIX) :]
        meta[name.replace("_", "-")] = str(v)

    try:
        return PartitionMetadata(
            cluster_id=meta.get("cluster-id", default_cluster_id),
            vector_count=int(meta.get("vector-count", "0")),
            dimensionality=int(meta.get("dimensionality", "0")),
            compression_type=meta.get("compression-type", "snappy"),
            size_bytes=size_bytes,
            created_at=float(meta.get("created-at", "0")),
        )
    except ValueError as ex:
        raise BlobStoreError(f"invalid partition metadata: {ex}") from ex


class MinioPartitionStoreAdapter(PartitionStorePort):
    """MinIO (S3-compatible) adapter for partition reads.

    Features:
    - get: full blob, None for a missing key
    - head: partition metadata from object user metadata (no download)
    - list_keys: recursive listing under a prefix
    - put: publish a partition (tooling and fixtures)
    """

    def __init__(self, cfg: MinioConfig) -> None:
        """Initialize MinIO partition store adapter.

        Args:
            cfg: MinioConfig with connection parameters

        Raises:
            BlobStoreError: If MinIO initialization fails
        """
        self._cfg = cfg
        self._client = self._init_client(cfg)
        if cfg.create_bucket:
            self._ensure_bucket()

    def _init_client(self, cfg: MinioConfig) -> Any:
        """Initialize MinIO client with lazy import.

        Raises:
            BlobStoreError: If minio-py not available or init fails
        """
        try:
            minio = import_module("minio")
            return minio.Minio(
                cfg.endpoint,
                access_key=cfg.access_key,
                secret_key=cfg.secret_key,
                secure=cfg.secure,
                region=cfg.region,
            )
        except Exception as ex:
            raise BlobStoreError(f"MinIO init failed: {ex}") from ex

    def _ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(self._cfg.bucket_name):
                self._client.make_bucket(self._cfg.bucket_name, location=self._cfg.region)
        except Exception as ex:
            raise BlobStoreError(f"Bucket creation failed: {ex}") from ex

    @staticmethod
    def _is_missing(ex: Exception) -> bool:
        return getattr(ex, "code", None) in _MISSING_CODES

    def get(self, key: str) -> Result[bytes | None, DomainError]:
        """Get partition blob by key.

        Returns:
            Result with bytes, None if the key does not exist, or BlobStoreError
        """
        response = None
        try:
            response = self._client.get_object(self._cfg.bucket_name, key)
            return Result.success(response.read())
        except Exception as ex:
            if self._is_missing(ex):
                return Result.success(None)
            return Result.failure(BlobStoreError(f"get failed: {ex}"))
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def head(self, key: str) -> Result[PartitionMetadata | None, DomainError]:
        """Get partition metadata without downloading data."""
        try:
            stat = self._client.stat_object(self._cfg.bucket_name, key)
        except Exception as ex:
            if self._is_missing(ex):
                return Result.success(None)
            return Result.failure(BlobStoreError(f"head failed: {ex}"))

        try:
            meta = partition_metadata_from_headers(stat.metadata, int(stat.size or 0))
        except BlobStoreError as ex:
            return Result.failure(ex)
        return Result.success(meta)

    def list_keys(self, prefix: str = "") -> Result[list[str], DomainError]:
        """List object keys with optional prefix (e.g., "partitions/")."""
        try:
            objects = self._client.list_objects(
                self._cfg.bucket_name, prefix=prefix, recursive=True
            )
            return Result.success([obj.object_name for obj in objects])
        except Exception as ex:
            return Result.failure(BlobStoreError(f"list_keys failed: {ex}"))

    def put(
        self, key: str, data: bytes, meta: PartitionMetadata | None = None
    ) -> Result[str, DomainError]:
        """Upload a partition blob, with its metadata as user metadata."""
        try:
            self._client.put_object(
                self._cfg.bucket_name,
                key,
                BytesIO(data),
                length=len(data),
                metadata=partition_metadata_to_headers(meta) if meta is not None else None,
            )
            return Result.success(key)
        except Exception as ex:
            return Result.failure(BlobStoreError(f"put failed: {ex}"))
