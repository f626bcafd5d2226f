"""Partition codec port (blob bytes <-> ParsedPartition)."""

from typing import Protocol

from tiered_search.domain.models import ParsedPartition


class PartitionCodecPort(Protocol):
    def decode(self, blob: bytes) -> ParsedPartition:
        """Decode a partition blob.

        Raises:
            PartitionDecodeError: If the blob is malformed
        """
        ...

    def encode(self, partition: ParsedPartition) -> bytes:
        """Encode a partition (tooling and fixtures; the engine only decodes)."""
        ...
