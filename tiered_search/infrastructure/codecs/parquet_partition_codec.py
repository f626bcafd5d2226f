"""Parquet codec for cold-tier partitions.

Layout: one row per vector, full embeddings as ``list<float32>``, entry
metadata as a JSON string column. Partition-level metadata lives in the
Parquet schema metadata so a reader never needs a side file.
"""

from __future__ import annotations

import io
import json
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from tiered_search.application.ports.partition_codec_port import PartitionCodecPort
from tiered_search.domain.errors import PartitionDecodeError, ValidationError
from tiered_search.domain.models import ParsedPartition, PartitionMetadata, VectorEntry
from tiered_search.domain.types import coerce_metadata

PARTITION_SCHEMA = pa.schema(
    [
        pa.field("id", pa.string(), nullable=False),
        pa.field("namespace", pa.string(), nullable=False),
        pa.field("type", pa.string()),
        pa.field("embedding", pa.list_(pa.float32()), nullable=False),
        pa.field("source_table", pa.string()),
        pa.field("source_rowid", pa.int64()),
        pa.field("text_content", pa.string()),
        pa.field("metadata", pa.string()),
    ]
)

_REQUIRED_COLUMNS = ("id", "namespace", "embedding")


def _schema_metadata(meta: PartitionMetadata) -> dict[bytes, bytes]:
    return {
        b"cluster_id": meta.cluster_id.encode(),
        b"vector_count": str(meta.vector_count).encode(),
        b"dimensionality": str(meta.dimensionality).encode(),
        b"compression_type": meta.compression_type.encode(),
        b"created_at": str(meta.created_at).encode(),
    }


class ParquetPartitionCodec(PartitionCodecPort):
    """Encode/decode partitions as Parquet (snappy by default)."""

    def __init__(self, compression: str = "snappy") -> None:
        self.compression = compression

    def encode(self, partition: ParsedPartition) -> bytes:
        rows = [
            {
                "id": v.id,
                "namespace": v.namespace,
                "type": v.type,
                "embedding": list(v.embedding),
                "source_table": v.source_table,
                "source_rowid": v.source_rowid,
                "text_content": v.text_content,
                "metadata": json.dumps(dict(v.metadata)) if v.metadata else None,
            }
            for v in partition.vectors
        ]
        meta = partition.metadata
        dim = meta.dimensionality
        if not dim and partition.vectors:
            dim = len(partition.vectors[0].embedding)
        meta = PartitionMetadata(
            cluster_id=meta.cluster_id,
            vector_count=len(partition.vectors),
            dimensionality=dim,
            compression_type=self.compression,
            created_at=meta.created_at,
        )
        schema = PARTITION_SCHEMA.with_metadata(_schema_metadata(meta))
        table = pa.Table.from_pylist(rows, schema=schema)
        buffer = io.BytesIO()
        pq.write_table(table, buffer, compression=self.compression)
        return buffer.getvalue()

    def decode(self, blob: bytes) -> ParsedPartition:
        """Decode a Parquet partition.

        Raises:
            PartitionDecodeError: On unreadable Parquet, missing columns,
                inconsistent dimensionality or invalid metadata
        """
        try:
            table = pq.read_table(io.BytesIO(blob))
        except (pa.ArrowException, OSError, ValueError) as ex:
            raise PartitionDecodeError(partition_key="", detail=f"unreadable parquet: {ex}") from ex

        missing = [c for c in _REQUIRED_COLUMNS if c not in table.column_names]
        if missing:
            raise PartitionDecodeError(partition_key="", detail=f"missing columns {missing}")

        raw_meta = {k.decode(): v.decode() for k, v in (table.schema.metadata or {}).items()}
        vectors = [self._row_to_entry(row) for row in table.to_pylist()]

        try:
            dim = int(raw_meta.get("dimensionality", "0"))
            created_at = float(raw_meta.get("created_at", "0"))
        except ValueError as ex:
            raise PartitionDecodeError(
                partition_key="", detail=f"bad schema metadata: {ex}"
            ) from ex
        if not dim and vectors:
            dim = len(vectors[0].embedding)
        bad = next((v.id for v in vectors if len(v.embedding) != dim), None)
        if bad is not None:
            raise PartitionDecodeError(
                partition_key="", detail=f"vector '{bad}' does not have {dim} dimensions"
            )

        return ParsedPartition(
            vectors=vectors,
            metadata=PartitionMetadata(
                cluster_id=raw_meta.get("cluster_id", ""),
                vector_count=len(vectors),
                dimensionality=dim,
                compression_type=raw_meta.get("compression_type", self.compression),
                size_bytes=len(blob),
                created_at=created_at,
            ),
        )

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> VectorEntry:
        if row.get("id") is None or row.get("embedding") is None:
            raise PartitionDecodeError(partition_key="", detail="row without id or embedding")
        try:
            raw = json.loads(row["metadata"]) if row.get("metadata") else {}
            if not isinstance(raw, dict):
                raise ValidationError("metadata must be a JSON object")
            metadata = coerce_metadata(raw)
        except (json.JSONDecodeError, ValidationError) as ex:
            raise PartitionDecodeError(
                partition_key="", detail=f"invalid metadata for '{row['id']}': {ex}"
            ) from ex
        return VectorEntry(
            id=row["id"],
            namespace=row["namespace"],
            embedding=tuple(float(x) for x in row["embedding"]),
            type=row.get("type"),
            source_table=row.get("source_table") or "things",
            source_rowid=int(row.get("source_rowid") or 0),
            text_content=row.get("text_content"),
            metadata=metadata,
        )
