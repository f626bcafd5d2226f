"""Partition access: fetch a cold-tier blob and decode it.

Why: A stale cluster-to-partition mapping after compaction is expected, so
a missing key is success(None). Transport and decode failures are returned
as PartitionFetchError for the caller to isolate per partition.
"""

import structlog

from tiered_search.application.ports.partition_codec_port import PartitionCodecPort
from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.domain.errors import PartitionDecodeError, PartitionFetchError
from tiered_search.domain.models import ParsedPartition
from tiered_search.domain.types import Result

logger = structlog.get_logger()


def fetch_partition(
    store: PartitionStorePort,
    codec: PartitionCodecPort,
    partition_key: str,
) -> Result[ParsedPartition | None, PartitionFetchError]:
    """Fetch and decode one partition.

    Args:
        store: Object storage adapter
        codec: Partition blob decoder
        partition_key: Object key of the partition

    Returns:
        Result with the parsed partition, None if the key does not exist,
        or PartitionFetchError / PartitionDecodeError
    """
    r_blob = store.get(partition_key)
    if not r_blob.ok:
        detail = str(r_blob.error) if r_blob.error is not None else "unknown error"
        logger.warning("partition_fetch_failed", partition_key=partition_key, error=detail)
        return Result.failure(PartitionFetchError(partition_key=partition_key, detail=detail))

    if r_blob.value is None:
        logger.info("partition_missing", partition_key=partition_key)
        return Result.success(None)

    try:
        partition = codec.decode(r_blob.value)
    except PartitionDecodeError as ex:
        logger.warning("partition_decode_failed", partition_key=partition_key, error=ex.detail)
        return Result.failure(PartitionDecodeError(partition_key=partition_key, detail=ex.detail))

    logger.debug(
        "partition_fetched",
        partition_key=partition_key,
        vectors=len(partition.vectors),
        bytes=len(r_blob.value),
    )
    return Result.success(partition)
