"""Application ports package.

Re-exports every port so callers can import from one place.
"""

from tiered_search.application.ports.clock_port import ClockPort
from tiered_search.application.ports.cluster_index_port import ClusterIndexProvider
from tiered_search.application.ports.full_embedding_port import FullEmbeddingProvider
from tiered_search.application.ports.hot_index_port import HotIndexPort
from tiered_search.application.ports.partition_codec_port import PartitionCodecPort
from tiered_search.application.ports.partition_store_port import PartitionStorePort
from tiered_search.application.ports.telemetry_port import TelemetryPort

__all__ = [
    "ClockPort",
    "ClusterIndexProvider",
    "FullEmbeddingProvider",
    "HotIndexPort",
    "PartitionCodecPort",
    "PartitionStorePort",
    "TelemetryPort",
]
