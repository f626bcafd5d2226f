"""HTTP API for tiered vector search.

Why: Thin delegation to the SearchEngine; no business logic here. Handlers
are sync so the blocking partition fan-out runs in FastAPI's threadpool.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from tiered_search.application.dto.search_dto import SearchRequest
from tiered_search.config.logging import clear_request_id, set_request_id
from tiered_search.domain.errors import (
    AllPartitionsFailedError,
    ClusterIndexError,
    DomainError,
    ValidationError,
)
from tiered_search.domain.models import DistanceMetric, MergedSearchResult


# Pydantic models for request/response validation
class SearchRequestModel(BaseModel):
    """Request model for /v1/search endpoint."""

    query_embedding: list[float] = Field(..., min_length=1)
    top_k: int = Field(10, ge=0)
    namespace: str | None = None
    type: str | None = None
    metric: DistanceMetric | None = None
    use_hot: bool = True
    use_cold: bool = True
    rerank: bool = True
    timeout_s: float | None = Field(None, gt=0)
    max_clusters: int | None = Field(None, ge=0)
    min_cluster_similarity: float | None = None
    candidate_pool_size: int | None = Field(None, ge=0)


class SearchHitModel(BaseModel):
    id: str
    similarity: float
    tier: str
    source_rowid: int = 0
    cluster_id: str | None = None
    namespace: str | None = None
    type: str | None = None
    text_content: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResponseModel(BaseModel):
    """Response model for /v1/search endpoint."""

    results: list[SearchHitModel]
    metadata: dict[str, Any]


class RouteRequestModel(BaseModel):
    """Request model for /v1/clusters/route endpoint."""

    query_embedding: list[float] = Field(..., min_length=1)
    top_k: int | None = Field(None, ge=0)
    min_similarity: float | None = None
    metric: DistanceMetric | None = None


class RoutedClusterModel(BaseModel):
    cluster_id: str
    similarity: float
    partition_keys: list[str]
    vector_count: int


class RouteResponseModel(BaseModel):
    clusters: list[RoutedClusterModel]


class ReloadResponseModel(BaseModel):
    version: int
    clusters: int
    vectors: int


# Global state (initialized on startup)
container: Any | None = None


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Initialize dependencies on startup with DI container."""
    global container

    if container is None:
        from tiered_search.config.compose import build_container
        from tiered_search.config.logging import configure_logging

        container = build_container()
        configure_logging(
            level=container.settings.log_level, json_format=container.settings.log_json
        )
    yield


app = FastAPI(title="Tiered Vector Search API", version="1.0.0", lifespan=lifespan)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next: Any) -> Any:
    rid = set_request_id(request.headers.get("x-request-id"))
    try:
        response = await call_next(request)
    finally:
        clear_request_id()
    response.headers["x-request-id"] = rid
    return response


def _engine() -> Any:
    if container is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return container.get_engine()


def _raise_for(err: DomainError) -> None:
    """Map domain errors to HTTP status codes."""
    if isinstance(err, ValidationError):
        status = 422
    elif isinstance(err, AllPartitionsFailedError | ClusterIndexError):
        status = 503
    else:
        status = 500
    raise HTTPException(
        status_code=status, detail={"error": type(err).__name__, "message": str(err)}
    )


def _hit(r: MergedSearchResult) -> SearchHitModel:
    return SearchHitModel(
        id=r.id,
        similarity=r.similarity,
        tier=r.tier.value,
        source_rowid=r.source_rowid,
        cluster_id=r.cluster_id,
        namespace=r.entry.namespace if r.entry is not None else None,
        type=r.entry.type if r.entry is not None else None,
        text_content=r.entry.text_content if r.entry is not None else None,
        metadata=dict(r.metadata),
    )


@app.post("/v1/search", response_model=SearchResponseModel)
def search(req: SearchRequestModel) -> SearchResponseModel:
    """Tiered two-phase search.

    Example:
        POST /v1/search
        {"query_embedding": [0.1, ...], "top_k": 10, "namespace": "tenant-a"}
    """
    engine = _engine()
    result = engine.search(
        SearchRequest(
            query_embedding=tuple(req.query_embedding),
            top_k=req.top_k,
            namespace=req.namespace,
            type=req.type,
            metric=req.metric,
            use_hot=req.use_hot,
            use_cold=req.use_cold,
            rerank=req.rerank,
            timeout_s=req.timeout_s,
            max_clusters=req.max_clusters,
            min_cluster_similarity=req.min_cluster_similarity,
            candidate_pool_size=req.candidate_pool_size,
        )
    )
    if not result.ok:
        _raise_for(result.error)

    resp = result.value
    meta = resp.metadata
    return SearchResponseModel(
        results=[_hit(r) for r in resp.results],
        metadata={
            "clusters_searched": list(meta.clusters_searched),
            "total_vectors_scanned": meta.total_vectors_scanned,
            "search_time_ms": meta.search_time_ms,
            "missing_partitions": list(meta.missing_partitions),
            "failed_partitions": list(meta.failed_partitions),
            "deadline_exceeded": meta.deadline_exceeded,
            "candidates_considered": resp.candidates_considered,
            "reranked": resp.reranked,
            "phase1_ms": resp.phase1_ms,
            "phase2_ms": resp.phase2_ms,
        },
    )


@app.post("/v1/clusters/route", response_model=RouteResponseModel)
def route(req: RouteRequestModel) -> RouteResponseModel:
    """Show the clusters a query would be routed to."""
    engine = _engine()
    result = engine.route(
        tuple(req.query_embedding),
        top_k=req.top_k,
        min_similarity=req.min_similarity,
        metric=req.metric,
    )
    if not result.ok:
        _raise_for(result.error)
    return RouteResponseModel(
        clusters=[
            RoutedClusterModel(
                cluster_id=c.cluster_id,
                similarity=c.similarity,
                partition_keys=list(c.partition_keys or (c.partition_key,)),
                vector_count=c.vector_count,
            )
            for c in result.value
        ]
    )


@app.post("/v1/index/reload", response_model=ReloadResponseModel)
def reload_index() -> ReloadResponseModel:
    """Reload the cluster index snapshot from storage."""
    engine = _engine()
    result = engine.reload_cluster_index()
    if not result.ok:
        _raise_for(result.error)
    index = result.value
    return ReloadResponseModel(
        version=index.version, clusters=index.cluster_count, vectors=index.total_vectors
    )


@app.get("/health")
def health() -> dict[str, Any]:
    """Health check with index and hot-tier stats."""
    if container is None:
        return {"status": "starting", "service": "tiered-search"}
    engine = container.get_engine()
    stats = engine.stats()
    return {
        "status": "healthy",
        "service": "tiered-search",
        "cluster_index_version": engine.cluster_index.version,
        "clusters": engine.cluster_index.cluster_count,
        "cold_vectors": stats.cold_index_size,
        "hot_vectors": stats.hot_index_size,
        "searches": stats.searches,
    }


def main() -> None:
    """Run the API server."""
    import uvicorn

    from tiered_search.config.settings import AppSettings

    settings = AppSettings()
    uvicorn.run(
        "tiered_search.interface.http.api:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    main()
