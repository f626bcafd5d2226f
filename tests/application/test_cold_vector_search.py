"""Cold search orchestration with fake storage: routing, fan-out, partial results."""

import threading

import pytest

from tiered_search.application.use_cases.cold_vector_search import (
    DEFAULT_SEARCH_CONFIG,
    ColdSearchConfig,
    ColdSearchOptions,
    ColdVectorSearch,
)
from tiered_search.domain.errors import (
    AllPartitionsFailedError,
    BlobStoreError,
    DimensionMismatch,
    PartitionDecodeError,
    ValidationError,
    ZeroVectorError,
)
from tiered_search.domain.models import (
    Cluster,
    ClusterIndex,
    ParsedPartition,
    PartitionMetadata,
    VectorEntry,
)
from tiered_search.domain.types import Result


class FakeStore:
    """Key -> bytes; an Exception value fails the get, an Event blocks it."""

    def __init__(self, blobs, gates=None):
        self.blobs = blobs
        self.gates = gates or {}
        self.calls = []
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            gate.wait(5.0)
        value = self.blobs.get(key)
        if isinstance(value, Exception):
            return Result.failure(BlobStoreError(str(value)))
        return Result.success(value)

    def head(self, key):
        return Result.success(None)

    def list_keys(self, prefix=""):
        return Result.success(sorted(k for k in self.blobs if k.startswith(prefix)))


class FakeCodec:
    """Blob bytes are the partition key; decodes from a registry."""

    def __init__(self, partitions):
        self.partitions = partitions

    def decode(self, blob):
        try:
            return self.partitions[blob.decode()]
        except KeyError as ex:
            raise PartitionDecodeError(partition_key="", detail="unknown blob") from ex

    def encode(self, partition):
        raise NotImplementedError


class FakeTelemetry:
    def __init__(self):
        self.counters = []
        self.totals = {}

    def incr(self, name, tags=None, value=1):
        self.counters.append(name)
        self.totals[name] = self.totals.get(name, 0) + value

    def observe(self, name, value, tags=None):
        pass


def _partition(cluster_id, entries):
    return ParsedPartition(
        vectors=[VectorEntry(id=i, namespace=ns, embedding=e) for i, e, ns in entries],
        metadata=PartitionMetadata(
            cluster_id=cluster_id, vector_count=len(entries), dimensionality=3
        ),
    )


INDEX = ClusterIndex(
    clusters=(
        Cluster("cx", (1.0, 0.0, 0.0), "p/cx", vector_count=3),
        Cluster("cy", (0.0, 1.0, 0.0), "p/cy", vector_count=2),
        Cluster("cxy", (1.0, 1.0, 0.0), "p/cxy", vector_count=2),
    )
)

PARTITIONS = {
    "p/cx": _partition(
        "cx",
        [
            ("x1", (1.0, 0.0, 0.0), "ns"),
            ("x2", (0.9, 0.1, 0.0), "ns"),
            ("x3", (0.8, 0.0, 0.2), "other"),
        ],
    ),
    "p/cy": _partition("cy", [("y1", (0.0, 1.0, 0.0), "ns"), ("y2", (0.1, 0.9, 0.0), "ns")]),
    "p/cxy": _partition("cxy", [("xy1", (0.7, 0.7, 0.0), "ns"), ("x2", (0.9, 0.1, 0.0), "ns")]),
}


def _store(**overrides):
    blobs = {k: k.encode() for k in PARTITIONS}
    blobs.update(overrides)
    return FakeStore(blobs)


def _search(store=None, config=None, telemetry=None):
    return ColdVectorSearch(
        store=store or _store(),
        codec=FakeCodec(PARTITIONS),
        cluster_index=INDEX,
        config=config or ColdSearchConfig(cluster_similarity_threshold=None),
        telemetry=telemetry,
    )


def test_default_config_values():
    assert DEFAULT_SEARCH_CONFIG.max_clusters == 3
    assert DEFAULT_SEARCH_CONFIG.cluster_similarity_threshold == 0.5
    assert DEFAULT_SEARCH_CONFIG.default_limit == 10


def test_search_merges_across_partitions_and_dedups():
    r = _search().search_with_metadata(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0), limit=10))
    assert r.ok
    ids = [h.id for h in r.value.results]
    assert ids[0] == "x1"
    assert ids.count("x2") == 1
    scores = [h.similarity for h in r.value.results]
    assert scores == sorted(scores, reverse=True)
    meta = r.value.metadata
    assert set(meta.clusters_searched) == {"cx", "cy", "cxy"}
    assert meta.total_vectors_scanned == 7
    assert meta.missing_partitions == ()
    assert meta.failed_partitions == ()
    assert meta.deadline_exceeded is False


def test_results_carry_cluster_id():
    opts = ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0), limit=1, max_clusters=1)
    r = _search().search(opts)
    assert r.ok
    assert r.value[0].id == "x1"
    assert r.value[0].cluster_id == "cx"


def test_routing_threshold_limits_partitions():
    store = _store()
    search = _search(store=store, config=ColdSearchConfig(cluster_similarity_threshold=0.9))
    r = search.search_with_metadata(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0)))
    assert r.ok
    assert r.value.metadata.clusters_searched == ("cx",)
    assert store.calls == ["p/cx"]


def test_namespace_filter():
    r = _search().search(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0), namespace="other"))
    assert r.ok
    assert [h.id for h in r.value] == ["x3"]


def test_missing_partition_is_soft():
    store = _store()
    del store.blobs["p/cy"]
    opts = ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0))
    r = _search(store=store).search_with_metadata(opts)
    assert r.ok
    assert r.value.metadata.missing_partitions == ("p/cy",)
    assert "cy" not in r.value.metadata.clusters_searched
    assert r.value.results


def test_failed_partition_is_isolated():
    telemetry = FakeTelemetry()
    store = _store(**{"p/cxy": RuntimeError("boom")})
    r = _search(store=store, telemetry=telemetry).search_with_metadata(
        ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0))
    )
    assert r.ok
    assert r.value.metadata.failed_partitions == ("p/cxy",)
    assert "xy1" not in [h.id for h in r.value.results]
    assert "search.partitions.failed" in telemetry.counters


def test_malformed_partition_counts_as_failed():
    store = _store(**{"p/cx": b"not-a-partition"})
    opts = ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0))
    r = _search(store=store).search_with_metadata(opts)
    assert r.ok
    assert r.value.metadata.failed_partitions == ("p/cx",)


def test_all_partitions_failed_is_hard():
    store = _store(**{k: RuntimeError("down") for k in PARTITIONS})
    r = _search(store=store).search(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0)))
    assert not r.ok
    assert isinstance(r.error, AllPartitionsFailedError)
    assert set(r.error.failed_partitions) == set(PARTITIONS)


def test_all_missing_is_empty_success():
    store = FakeStore({})
    r = _search(store=store).search(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0)))
    assert r.ok
    assert r.value == []


def test_deadline_returns_partial_results():
    gate = threading.Event()
    store = _store()
    store.gates["p/cy"] = gate
    telemetry = FakeTelemetry()
    try:
        r = _search(store=store, telemetry=telemetry).search_with_metadata(
            ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0), timeout_s=0.3)
        )
    finally:
        gate.set()
    assert r.ok
    meta = r.value.metadata
    assert meta.deadline_exceeded is True
    assert "cy" not in meta.clusters_searched
    assert "x1" in [h.id for h in r.value.results]
    assert "search.deadline_exceeded" in telemetry.counters


def test_zero_vector_fails_fast():
    store = _store()
    r = _search(store=store).search(ColdSearchOptions(query_embedding=(0.0, 0.0, 0.0)))
    assert not r.ok
    assert isinstance(r.error, ZeroVectorError)
    assert store.calls == []


def test_dimension_mismatch_fails_fast():
    r = _search().search(ColdSearchOptions(query_embedding=(1.0, 0.0)))
    assert not r.ok
    assert isinstance(r.error, DimensionMismatch)


def test_negative_limit_rejected_and_zero_limit_empty():
    r = _search().search(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0), limit=-1))
    assert isinstance(r.error, ValidationError)
    store = _store()
    r = _search(store=store).search(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0), limit=0))
    assert r.ok and r.value == []
    assert store.calls == []


def test_update_cluster_index_swaps_snapshot():
    search = _search()
    new_index = ClusterIndex(clusters=(Cluster("cy", (0.0, 1.0, 0.0), "p/cy"),), version=2)
    search.update_cluster_index(new_index)
    assert search.cluster_index.version == 2
    r = search.search_with_metadata(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0)))
    assert r.value.metadata.clusters_searched == ("cy",)


@pytest.mark.slow
def test_concurrent_queries_share_engine():
    from concurrent.futures import ThreadPoolExecutor

    search = _search()
    queries = [(1.0, 0.0, 0.0), (0.0, 1.0, 0.0)] * 10
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(
            pool.map(
                lambda q: search.search(ColdSearchOptions(query_embedding=q, limit=1)), queries
            )
        )
    assert [r.value[0].id for r in results] == ["x1", "y1"] * 10


def test_partition_with_incompatible_dimension_is_isolated():
    telemetry = FakeTelemetry()
    partitions = dict(PARTITIONS)
    partitions["p/odd"] = ParsedPartition(
        vectors=[VectorEntry(id="odd", namespace="ns", embedding=(1.0, 0.0))],
        metadata=PartitionMetadata(cluster_id="codd", vector_count=1, dimensionality=2),
    )
    index = ClusterIndex(
        clusters=(*INDEX.clusters, Cluster("codd", (1.0, 0.0, 0.0), "p/odd", vector_count=1))
    )
    blobs = {k: k.encode() for k in partitions}
    search = ColdVectorSearch(
        store=FakeStore(blobs),
        codec=FakeCodec(partitions),
        cluster_index=index,
        config=ColdSearchConfig(cluster_similarity_threshold=None, max_clusters=4),
        telemetry=telemetry,
    )

    r = search.search_with_metadata(ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0)))

    assert r.ok
    assert r.value.metadata.failed_partitions == ("p/odd",)
    ids = [h.id for h in r.value.results]
    assert "x1" in ids and "odd" not in ids
    assert telemetry.totals["search.partitions.failed"] == 1


def test_partition_counters_add_one_per_partition():
    telemetry = FakeTelemetry()
    store = _store(**{"p/cy": None, "p/cxy": None})
    r = _search(store=store, telemetry=telemetry).search_with_metadata(
        ColdSearchOptions(query_embedding=(1.0, 0.0, 0.0))
    )
    assert r.ok
    assert len(r.value.metadata.missing_partitions) == 2
    assert telemetry.totals["search.partitions.missing"] == 2
