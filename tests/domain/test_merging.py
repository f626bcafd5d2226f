"""Domain tests for k-way merge and hot/cold tier combination."""

import pytest

from tiered_search.domain.errors import ValidationError
from tiered_search.domain.models import (
    ColdSearchResult,
    MergedSearchResult,
    SearchTier,
    VectorEntry,
)
from tiered_search.domain.services.merging import (
    MergeOptions,
    combine_tiered_results,
    merge_search_results,
)


def _cold(id_, score, cluster="c", rowid=0, metadata=None):
    entry = VectorEntry(
        id=id_, namespace="ns", embedding=(1.0,), source_rowid=rowid, metadata=metadata or {}
    )
    return ColdSearchResult(id=id_, similarity=score, entry=entry, cluster_id=cluster)


def _hot(id_, score, rowid=0):
    return MergedSearchResult(id=id_, similarity=score, tier=SearchTier.HOT, source_rowid=rowid)


def test_merge_three_partitions_with_overlap():
    p1 = [_cold(i, s) for i, s in zip(("a1", "dup", "a3", "a4", "a5"), (0.95, 0.8, 0.5, 0.3, 0.1))]
    p2 = [_cold(i, s) for i, s in zip(("b1", "b2", "dup", "b4", "b5"), (0.9, 0.7, 0.6, 0.2, 0.05))]
    p3 = [_cold(i, s) for i, s in zip(("c1", "c2", "c3", "c4", "c5"), (0.85, 0.65, 0.4, 0.25, 0.1))]

    out = merge_search_results([p1, p2, p3], MergeOptions(limit=10))

    ids = [r.id for r in out]
    assert ids.count("dup") == 1
    assert next(r for r in out if r.id == "dup").similarity == 0.8
    assert len(out) <= 10
    scores = [r.similarity for r in out]
    assert scores == sorted(scores, reverse=True)


def test_merge_without_limit_pressure_drops_only_duplicate():
    p1 = [_cold("x", 0.8), _cold("y", 0.5)]
    p2 = [_cold("z", 0.7), _cold("x", 0.6)]
    out = merge_search_results([p1, p2], MergeOptions(limit=10))
    assert [r.id for r in out] == ["x", "z", "y"]


def test_merge_zero_limit_and_empty_inputs():
    assert merge_search_results([[_cold("a", 0.5)]], MergeOptions(limit=0)) == []
    assert merge_search_results([], MergeOptions(limit=5)) == []
    assert merge_search_results([[], []], MergeOptions(limit=5)) == []


def test_merge_negative_limit_rejected():
    with pytest.raises(ValidationError):
        merge_search_results([[_cold("a", 0.5)]], MergeOptions(limit=-1))


def test_combine_cold_wins_on_collision():
    hot, cold = [_hot("x", 0.7, rowid=42)], [_cold("x", 0.91)]
    out = combine_tiered_results(hot, cold, MergeOptions(limit=10))
    assert len(out) == 1
    assert out[0].similarity == 0.91
    assert out[0].tier is SearchTier.COLD
    assert out[0].source_rowid == 42


def test_combine_cold_wins_even_with_lower_score():
    out = combine_tiered_results(
        [_hot("x", 0.95)], [_cold("x", 0.6, metadata={"k": "cold"})], MergeOptions(limit=10)
    )
    assert out[0].similarity == 0.6
    assert out[0].metadata == {"k": "cold"}
    assert out[0].cluster_id == "c"


def test_combine_keeps_both_tiers_sorted():
    hot = [_hot("h1", 0.9), _hot("shared", 0.5)]
    cold = [_cold("c1", 0.8), _cold("shared", 0.85), _cold("c2", 0.2)]
    out = combine_tiered_results(hot, cold, MergeOptions(limit=3))
    assert [(r.id, r.tier) for r in out] == [
        ("h1", SearchTier.HOT),
        ("shared", SearchTier.COLD),
        ("c1", SearchTier.COLD),
    ]


def test_combine_dedups_cold_keeping_max():
    cold = [_cold("c", 0.3, cluster="low"), _cold("c", 0.6, cluster="high")]
    out = combine_tiered_results([], cold, MergeOptions(limit=10))
    assert len(out) == 1
    assert out[0].cluster_id == "high"


def test_combine_cold_rowid_used_when_hot_has_none():
    hot, cold = [_hot("x", 0.5)], [_cold("x", 0.6, rowid=9)]
    out = combine_tiered_results(hot, cold, MergeOptions(limit=5))
    assert out[0].source_rowid == 9
