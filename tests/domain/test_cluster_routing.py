"""Domain tests for centroid-based cluster routing."""

import pytest

from tiered_search.domain.errors import DimensionMismatch, ValidationError, ZeroVectorError
from tiered_search.domain.models import Cluster, ClusterIndex, DistanceMetric
from tiered_search.domain.services.cluster_routing import (
    ClusterRoutingOptions,
    identify_relevant_clusters,
    metric_similarity,
)


def _index(metric=DistanceMetric.COSINE):
    return ClusterIndex(
        clusters=(
            Cluster("c-x", (1.0, 0.0, 0.0), "p/x.parquet", vector_count=10),
            Cluster("c-y", (0.0, 1.0, 0.0), "p/y.parquet", vector_count=20),
            Cluster("c-xy", (1.0, 1.0, 0.0), "p/xy.parquet", vector_count=5),
            Cluster("c-neg", (-1.0, 0.0, 0.0), "p/neg.parquet"),
        ),
        metric=metric,
    )


def test_clusters_sorted_by_similarity():
    out = identify_relevant_clusters((1.0, 0.2, 0.0), _index())
    assert [c.cluster_id for c in out] == ["c-x", "c-xy", "c-y", "c-neg"]
    assert all(out[0].similarity >= c.similarity for c in out)
    assert out[0].partition_key == "p/x.parquet"
    assert out[0].vector_count == 10


def test_threshold_then_cap():
    out = identify_relevant_clusters(
        (1.0, 0.2, 0.0), _index(), ClusterRoutingOptions(top_k=5, min_similarity=0.5)
    )
    assert [c.cluster_id for c in out] == ["c-x", "c-xy"]

    out = identify_relevant_clusters((1.0, 0.2, 0.0), _index(), ClusterRoutingOptions(top_k=1))
    assert [c.cluster_id for c in out] == ["c-x"]


def test_zero_top_k_and_empty_index():
    opts = ClusterRoutingOptions(top_k=0)
    assert identify_relevant_clusters((1.0, 0.0, 0.0), _index(), opts) == []
    assert identify_relevant_clusters((1.0, 0.0, 0.0), ClusterIndex(clusters=())) == []


def test_negative_top_k_rejected():
    with pytest.raises(ValidationError):
        identify_relevant_clusters((1.0, 0.0, 0.0), _index(), ClusterRoutingOptions(top_k=-1))


def test_ties_keep_index_order():
    index = ClusterIndex(
        clusters=(
            Cluster("first", (1.0, 0.0), "a"),
            Cluster("second", (2.0, 0.0), "b"),
        )
    )
    out = identify_relevant_clusters((1.0, 0.0), index)
    assert [c.cluster_id for c in out] == ["first", "second"]


def test_query_truncated_to_centroid_dimension():
    centroid = tuple([1.0] + [0.0] * 63)
    index = ClusterIndex(clusters=(Cluster("c", centroid, "k"),))
    query = tuple([3.0] + [0.0] * 63 + [5.0] * 704)
    out = identify_relevant_clusters(query, index)
    assert abs(out[0].similarity - 1.0) < 1e-9


def test_shorter_query_is_a_mismatch():
    with pytest.raises(DimensionMismatch):
        identify_relevant_clusters((1.0, 0.0), _index())


def test_zero_query_rejected():
    with pytest.raises(ZeroVectorError):
        identify_relevant_clusters((0.0, 0.0, 0.0), _index())


def test_metric_override_and_mapping():
    assert metric_similarity(DistanceMetric.DOT_PRODUCT, (1.0, 0.0), (2.0, 0.0)) == 2.0
    assert metric_similarity(DistanceMetric.EUCLIDEAN, (1.0, 0.0), (1.0, 0.0)) == 1.0
    far = metric_similarity(DistanceMetric.EUCLIDEAN, (1.0, 0.0), (-1.0, 0.0))
    assert abs(far - 1.0 / 3.0) < 1e-12

    out = identify_relevant_clusters(
        (1.0, 0.0, 0.0), _index(), ClusterRoutingOptions(metric=DistanceMetric.EUCLIDEAN)
    )
    assert out[0].cluster_id == "c-x"
    assert out[-1].cluster_id == "c-neg"


def test_multi_partition_cluster_exposes_all_keys():
    index = ClusterIndex(
        clusters=(Cluster("c", (1.0, 0.0), "k0", extra_partition_keys=("k1", "k2")),)
    )
    out = identify_relevant_clusters((1.0, 0.0), index)
    assert out[0].partition_keys == ("k0", "k1", "k2")
