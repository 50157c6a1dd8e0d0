"""Command-line access to a persisted index.

Examples::

    content-index --data-dir ./data add 1 '{"title": "batman"}'
    content-index --data-dir ./data bulk items.json
    content-index --data-dir ./data search batman --limit 5
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import re
import sys
from typing import Any

import orjson
from pydantic import ValidationError

from content_index.config import Settings
from content_index.observability import (
    configure_logging,
    configure_metrics_exporter,
    configure_trace_exporter,
    init_metrics,
    init_tracing,
)
from content_index.search.analyzers import available_analyzers
from content_index.search.errors import IndexingError
from content_index.search.fields import DocumentId
from content_index.search.index import SearchIndex


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BATCH_FAILURES = 2

_INT_ID = re.compile(r"^-?\d+$")


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="content-index", description="Index and search documents.")
    parser.add_argument("--data-dir", type=Path, help="Index directory (defaults to INDEX_DATA_DIR)")
    parser.add_argument("--name", help="Index name used in logs and metrics")
    parser.add_argument("--analyzer", choices=available_analyzers(), help="Analyzer for a new index")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    parser.add_argument(
        "--string-ids",
        action="store_true",
        help="Keep numeric-looking ids as strings instead of integers",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    for name in ("add", "update"):
        cmd = commands.add_parser(name, help=f"{name.title()} one document")
        cmd.add_argument("id")
        cmd.add_argument("fields", help="Document fields as a JSON object")

    delete = commands.add_parser("delete", help="Delete one or more documents")
    delete.add_argument("ids", nargs="+")

    get = commands.add_parser("get", help="Print a stored document")
    get.add_argument("id")

    bulk = commands.add_parser("bulk", help="Index a JSON file mapping id -> fields")
    bulk.add_argument("file", type=Path)

    search = commands.add_parser("search", help="Run a free-text query")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=10)
    search.add_argument("--with-fields", action="store_true", help="Include stored fields in the output")

    count = commands.add_parser("count", help="Count documents matching a query")
    count.add_argument("query")

    commands.add_parser("checkpoint", help="Write a snapshot and truncate the mutation log")
    commands.add_parser("stats", help="Print index statistics")
    return parser


def init_observability(settings: Settings) -> None:
    """Set up OTel metrics, and tracing when an OTLP collector is enabled."""

    collector = settings.observability
    resource_attributes = dict(collector.resource_attributes)
    configure_metrics_exporter(collector, service_name=settings.service_name)
    init_metrics(service_name=settings.service_name, resource_attributes=resource_attributes)
    if collector.enabled:
        provider = init_tracing(service_name=settings.service_name, resource_attributes=resource_attributes)
        configure_trace_exporter(collector, provider)


def _parse_id(raw: str, *, string_ids: bool) -> DocumentId:
    if not string_ids and _INT_ID.match(raw):
        return int(raw)
    return raw


def _parse_fields(raw: str | bytes) -> Any:
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc


def _emit(payload: Any) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS).decode("utf-8"))
    sys.stdout.write("\n")


def _run_command(args: argparse.Namespace, index: SearchIndex) -> int:
    string_ids = args.string_ids

    if args.command == "add":
        index.add(_parse_id(args.id, string_ids=string_ids), _parse_fields(args.fields))
    elif args.command == "update":
        index.update(_parse_id(args.id, string_ids=string_ids), _parse_fields(args.fields))
    elif args.command == "delete":
        failures = index.delete_many([_parse_id(raw, string_ids=string_ids) for raw in args.ids])
        if failures:
            _emit({"failures": [{"id": f.doc_id, "reason": f.reason} for f in failures]})
            return EXIT_BATCH_FAILURES
    elif args.command == "get":
        _emit(index.get(_parse_id(args.id, string_ids=string_ids)))
    elif args.command == "bulk":
        items = _parse_fields(args.file.read_bytes())
        if not isinstance(items, dict):
            raise ValueError("Bulk file must contain a JSON object mapping id -> fields")
        payload = {_parse_id(key, string_ids=string_ids): value for key, value in items.items()}
        failures = index.bulk_index(payload)
        _emit(
            {
                "indexed": len(payload) - len(failures),
                "failures": [{"id": f.doc_id, "reason": f.reason} for f in failures],
            }
        )
        if failures:
            return EXIT_BATCH_FAILURES
    elif args.command == "search":
        hits = []
        for hit in index.search(args.query, limit=args.limit):
            entry: dict[str, Any] = {"id": hit.doc_id, "score": hit.score}
            if args.with_fields:
                entry["fields"] = hit.fields
            hits.append(entry)
        _emit({"query": args.query, "total": index.count(args.query), "hits": hits})
    elif args.command == "count":
        _emit({"query": args.query, "count": index.count(args.query)})
    elif args.command == "checkpoint":
        path = index.checkpoint()
        _emit({"snapshot": str(path) if path else None})
    elif args.command == "stats":
        _emit(index.stats())
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as exc:
        sys.stderr.write(f"Invalid configuration: {exc}\n")
        return EXIT_ERROR

    configure_logging(args.log_level or settings.log_level, json_output=settings.log_json)
    init_observability(settings)

    overrides: dict[str, Any] = {}
    if args.analyzer:
        overrides["index_analyzer"] = args.analyzer
    if overrides:
        settings = settings.model_copy(update=overrides)

    data_dir = args.data_dir or settings.index_data_dir
    if data_dir is None:
        logger.error("No index directory: pass --data-dir or set INDEX_DATA_DIR")
        return EXIT_ERROR

    try:
        with SearchIndex.from_settings(settings, data_dir=data_dir, name=args.name) as index:
            return _run_command(args, index)
    except (IndexingError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_ERROR
    except OSError as exc:
        logger.error("I/O error: %s", exc)
        return EXIT_ERROR


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
