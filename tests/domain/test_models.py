"""Domain model invariants and typed metadata."""

import dataclasses

import pytest

from tiered_search.domain.errors import ValidationError
from tiered_search.domain.models import (
    Cluster,
    ClusterIndex,
    ColdSearchResult,
    DistanceMetric,
    MergedSearchResult,
    SearchMetadata,
    SearchTier,
    VectorEntry,
)
from tiered_search.domain.types import Result, coerce_metadata


def test_vector_entry_defaults_and_immutability():
    e = VectorEntry(id="a", namespace="ns", embedding=(1.0, 0.0))
    assert e.type is None
    assert e.source_table == "things"
    assert e.metadata == {}
    with pytest.raises(dataclasses.FrozenInstanceError):
        e.id = "b"  # type: ignore[misc]


def test_cluster_partition_keys():
    c = Cluster("c", (1.0,), "k0", extra_partition_keys=("k1",))
    assert c.partition_keys == ("k0", "k1")
    assert Cluster("d", (1.0,), "only").partition_keys == ("only",)


def test_cluster_index_counts():
    idx = ClusterIndex(
        clusters=(
            Cluster("a", (1.0,), "ka", vector_count=3),
            Cluster("b", (1.0,), "kb", vector_count=4),
        )
    )
    assert idx.cluster_count == 2
    assert idx.total_vectors == 7
    assert idx.metric is DistanceMetric.COSINE


def test_merged_from_cold():
    entry = VectorEntry(id="a", namespace="ns", embedding=(1.0,), source_rowid=7, metadata={"k": 1})
    cold = ColdSearchResult(id="a", similarity=0.5, entry=entry, cluster_id="c")
    m = MergedSearchResult.from_cold(cold)
    assert m.tier is SearchTier.COLD
    assert m.source_rowid == 7
    assert m.cluster_id == "c"
    assert m.metadata == {"k": 1}


def test_search_metadata_defaults():
    meta = SearchMetadata()
    assert meta.clusters_searched == ()
    assert meta.deadline_exceeded is False


def test_metric_values():
    assert DistanceMetric("dot_product") is DistanceMetric.DOT_PRODUCT
    assert SearchTier.HOT.value == "hot"


def test_coerce_metadata_accepts_json_scalars():
    raw = {"s": "x", "i": 1, "f": 1.5, "b": True, "n": None}
    assert coerce_metadata(raw) == raw
    assert coerce_metadata(None) == {}


@pytest.mark.parametrize("raw", [{"k": [1, 2]}, {"k": {"nested": 1}}, {1: "x"}])
def test_coerce_metadata_rejects_non_scalars(raw):
    with pytest.raises(ValidationError):
        coerce_metadata(raw)


def test_result_success_and_failure():
    ok = Result.success(3)
    assert ok.ok and ok.value == 3 and ok.error is None
    err = Result.failure(ValidationError("bad"))
    assert not err.ok and isinstance(err.error, ValidationError)
