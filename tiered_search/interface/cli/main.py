"""CLI for ad-hoc searches and index inspection.

Why: Operators need to see routing decisions and partition contents without
standing up the HTTP service. Thin layer: parse args, call the engine,
format the Result.
"""

import argparse
import json
import sys
from pathlib import Path

from tiered_search.application.dto.search_dto import SearchRequest
from tiered_search.config.compose import build_container
from tiered_search.config.logging import configure_logging
from tiered_search.domain.errors import DomainError, ValidationError
from tiered_search.domain.models import DistanceMetric
from tiered_search.domain.types import Vector


def _print_error(err: DomainError) -> int:
    print(f"[ERROR] {type(err).__name__}: {err}")
    return 1


def load_embedding(source: str) -> Vector:
    """Read a query vector from a JSON file (``-`` for stdin).

    Accepts a bare list or an object with an ``embedding`` key.

    Raises:
        ValidationError: If the input is not a non-empty list of numbers
    """
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as ex:
        raise ValidationError(f"embedding is not valid JSON: {ex}") from ex
    if isinstance(raw, dict):
        raw = raw.get("embedding")
    if not isinstance(raw, list) or not raw:
        raise ValidationError("embedding must be a non-empty JSON list of numbers")
    if not all(isinstance(x, int | float) and not isinstance(x, bool) for x in raw):
        raise ValidationError("embedding must contain only numbers")
    return tuple(float(x) for x in raw)


def cmd_search(args, engine) -> int:
    try:
        query = load_embedding(args.embedding)
    except ValidationError as ex:
        return _print_error(ex)

    result = engine.search(
        SearchRequest(
            query_embedding=query,
            top_k=args.top_k,
            namespace=args.namespace,
            type=args.type,
            use_hot=not args.no_hot,
            use_cold=not args.no_cold,
            rerank=not args.no_rerank,
            timeout_s=args.timeout,
            max_clusters=args.max_clusters,
            min_cluster_similarity=args.min_cluster_similarity,
            candidate_pool_size=args.candidate_pool_size,
            metric=DistanceMetric(args.metric) if args.metric else None,
        )
    )
    if not result.ok:
        return _print_error(result.error)

    resp = result.value
    for i, r in enumerate(resp.results, 1):
        cluster = f" cluster={r.cluster_id}" if r.cluster_id else ""
        print(f"[{i}] {r.id} (score={r.similarity:.4f}, tier={r.tier.value}{cluster})")
    meta = resp.metadata
    print(
        f"-- {len(resp.results)} results, {meta.total_vectors_scanned} vectors scanned "
        f"in {len(meta.clusters_searched)} clusters, reranked={resp.reranked}"
    )
    if meta.deadline_exceeded:
        print("-- deadline exceeded: results are partial")
    for key in meta.missing_partitions:
        print(f"-- missing partition: {key}")
    for key in meta.failed_partitions:
        print(f"-- failed partition: {key}")
    return 0


def cmd_route(args, engine) -> int:
    try:
        query = load_embedding(args.embedding)
    except ValidationError as ex:
        return _print_error(ex)

    result = engine.route(
        query,
        top_k=args.top_k,
        min_similarity=args.min_similarity,
        metric=DistanceMetric(args.metric) if args.metric else None,
    )
    if not result.ok:
        return _print_error(result.error)

    for c in result.value:
        keys = ", ".join(c.partition_keys or (c.partition_key,))
        print(f"{c.cluster_id} (similarity={c.similarity:.4f}, vectors={c.vector_count}) -> {keys}")
    if not result.value:
        print("-- no cluster passed the routing threshold")
    return 0


def cmd_inspect_partition(args, engine) -> int:
    result = engine.inspect_partition(args.key)
    if not result.ok:
        return _print_error(result.error)
    meta = result.value
    if meta is None:
        print(f"Partition '{args.key}' not found")
        return 1
    print(f"key:            {args.key}")
    print(f"cluster_id:     {meta.cluster_id}")
    print(f"vector_count:   {meta.vector_count}")
    print(f"dimensionality: {meta.dimensionality}")
    print(f"compression:    {meta.compression_type}")
    print(f"size_bytes:     {meta.size_bytes}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point with subcommands.

    Subcommands:
    - search: end-to-end tiered search for one query vector
    - route: show which clusters a query vector is routed to
    - inspect-partition: print a partition's metadata

    Returns:
        Exit code (0=success, 1=failure)
    """
    parser = argparse.ArgumentParser(
        prog="tiered-search",
        description="Tiered two-phase vector search",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    p_search = subparsers.add_parser("search", help="Run a search")
    p_search.add_argument("embedding", help="JSON file with the query vector ('-' for stdin)")
    p_search.add_argument("--top-k", type=int, default=10, help="Results to return (default: 10)")
    p_search.add_argument("--namespace", help="Namespace filter")
    p_search.add_argument("--type", help="Type filter")
    p_search.add_argument("--timeout", type=float, help="Query budget in seconds")
    p_search.add_argument("--max-clusters", type=int, help="Routing cap override")
    p_search.add_argument("--min-cluster-similarity", type=float, help="Routing threshold")
    p_search.add_argument("--metric", choices=[m.value for m in DistanceMetric])
    p_search.add_argument("--candidate-pool-size", type=int, help="Phase-1 pool override")
    p_search.add_argument("--no-hot", action="store_true", help="Skip the hot tier")
    p_search.add_argument("--no-cold", action="store_true", help="Skip the cold tier")
    p_search.add_argument("--no-rerank", action="store_true", help="Skip phase-2 reranking")

    p_route = subparsers.add_parser("route", help="Show cluster routing for a query")
    p_route.add_argument("embedding", help="JSON file with the query vector ('-' for stdin)")
    p_route.add_argument("--top-k", type=int, help="Max clusters")
    p_route.add_argument("--min-similarity", type=float, help="Routing threshold")
    p_route.add_argument("--metric", choices=[m.value for m in DistanceMetric])

    p_inspect = subparsers.add_parser("inspect-partition", help="Show partition metadata")
    p_inspect.add_argument("key", help="Partition object key")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    container = build_container()
    configure_logging(level=container.settings.log_level, json_format=container.settings.log_json)
    engine = container.get_engine()

    if args.command == "search":
        return cmd_search(args, engine)
    elif args.command == "route":
        return cmd_route(args, engine)
    elif args.command == "inspect-partition":
        return cmd_inspect_partition(args, engine)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
