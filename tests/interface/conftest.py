from dataclasses import replace

import pytest

from tiered_search.config.compose import Container
from tiered_search.config.settings import AppSettings
from tiered_search.domain.models import (
    Cluster,
    ClusterIndex,
    ParsedPartition,
    PartitionMetadata,
    VectorEntry,
)
from tiered_search.infrastructure.cluster_index.json_cluster_index_loader import (
    dump_cluster_index,
)


@pytest.fixture
def seeded_container():
    """Memory-backed container with two published clusters of 2-d vectors."""
    settings = replace(
        AppSettings(),
        partition_backend="memory",
        embedding_backend="memory",
        telemetry_enabled=False,
        hot_dimension=2,
        max_clusters=3,
        cluster_similarity_threshold=0.5,
        candidate_pool_size=50,
        query_timeout_s=None,
    )
    c = Container(settings)
    store = c.get_partition_store()
    codec = c.get_codec()
    full = c.get_full_embeddings()

    partitions = {
        "c0": [
            VectorEntry(id="a", namespace="t", embedding=(1.0, 0.0), text_content="alpha"),
            VectorEntry(id="b", namespace="t", embedding=(0.6, 0.8), type="note"),
        ],
        "c1": [VectorEntry(id="c", namespace="t", embedding=(0.0, 1.0))],
    }
    for cid, entries in partitions.items():
        meta = PartitionMetadata(cluster_id=cid, vector_count=len(entries), dimensionality=2)
        store.put(f"p/{cid}.parquet", codec.encode(ParsedPartition(entries, meta)), meta)
        for e in entries:
            full.put(e.id, e.embedding)

    index = ClusterIndex(
        clusters=(
            Cluster("c0", (1.0, 0.0), "p/c0.parquet", vector_count=2),
            Cluster("c1", (0.0, 1.0), "p/c1.parquet", vector_count=1),
        ),
        version=2,
    )
    store.put(settings.cluster_index_key, dump_cluster_index(index))
    return c
