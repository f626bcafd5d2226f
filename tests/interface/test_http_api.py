import pytest
from fastapi.testclient import TestClient

from tiered_search.interface.http import api


@pytest.fixture
def client(seeded_container, monkeypatch):
    monkeypatch.setattr(api, "container", seeded_container)
    return TestClient(api.app)


def test_health_before_startup(monkeypatch):
    monkeypatch.setattr(api, "container", None)
    resp = TestClient(api.app).get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "starting"


def test_search_requires_container(monkeypatch):
    monkeypatch.setattr(api, "container", None)
    resp = TestClient(api.app).post("/v1/search", json={"query_embedding": [1.0, 0.0]})
    assert resp.status_code == 503


def test_health_reports_index(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["cluster_index_version"] == 2
    assert body["clusters"] == 2
    assert body["cold_vectors"] == 3
    assert body["hot_vectors"] == 0


def test_search_returns_ranked_hits(client):
    resp = client.post(
        "/v1/search",
        json={"query_embedding": [1.0, 0.0], "top_k": 2, "namespace": "t"},
        headers={"x-request-id": "req-42"},
    )
    assert resp.status_code == 200
    assert resp.headers["x-request-id"] == "req-42"
    body = resp.json()
    assert [h["id"] for h in body["results"]] == ["a", "b"]
    first = body["results"][0]
    assert first["similarity"] == pytest.approx(1.0)
    assert first["text_content"] == "alpha"
    assert first["cluster_id"] == "c0"
    meta = body["metadata"]
    assert meta["clusters_searched"] == ["c0"]
    assert meta["total_vectors_scanned"] == 2
    assert meta["reranked"] is True
    assert meta["deadline_exceeded"] is False


def test_search_type_filter(client):
    body = client.post(
        "/v1/search", json={"query_embedding": [1.0, 0.0], "type": "note"}
    ).json()
    assert [h["id"] for h in body["results"]] == ["b"]


def test_request_validation_is_422(client):
    assert client.post("/v1/search", json={"query_embedding": []}).status_code == 422
    resp = client.post("/v1/search", json={"query_embedding": [1.0], "top_k": -1})
    assert resp.status_code == 422


def test_zero_vector_is_422(client):
    resp = client.post("/v1/search", json={"query_embedding": [0.0, 0.0]})
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "ZeroVectorError"


def test_all_partitions_failed_is_503(client, seeded_container):
    seeded_container.get_partition_store().put("p/c0.parquet", b"corrupt")
    resp = client.post("/v1/search", json={"query_embedding": [1.0, 0.0]})
    assert resp.status_code == 503
    assert resp.json()["detail"]["error"] == "AllPartitionsFailedError"


def test_route(client):
    resp = client.post(
        "/v1/clusters/route", json={"query_embedding": [1.0, 1.0], "min_similarity": 0.0}
    )
    assert resp.status_code == 200
    clusters = resp.json()["clusters"]
    assert {c["cluster_id"] for c in clusters} == {"c0", "c1"}
    assert clusters[0]["partition_keys"] in (["p/c0.parquet"], ["p/c1.parquet"])


def test_reload(client, seeded_container):
    resp = client.post("/v1/index/reload")
    assert resp.status_code == 200
    assert resp.json() == {"version": 2, "clusters": 2, "vectors": 3}

    seeded_container.get_partition_store().delete(seeded_container.settings.cluster_index_key)
    resp = client.post("/v1/index/reload")
    assert resp.status_code == 503
    assert resp.json()["detail"]["error"] == "ClusterIndexError"
