# ==============================================
# CLI — Command Line Entry Point
# ==============================================
#
# COMMANDS:
# ---------
# 1. Analyse a JSON / Extended JSON file (array of documents):
#    python -m docschema.cli analyse corpus.json --shards 4
#    python -m docschema.cli analyse corpus.json --save-partial node-a
#
# 2. Analyse a MongoDB collection:
#    python -m docschema.cli mongo users --shards 8
#
# 3. Analyse documents pulled from an HTTP endpoint:
#    python -m docschema.cli stream --count 100
#
# 4. Merge stored partial aggregates and finalize:
#    python -m docschema.cli merge node-a node-b
#
# 5. Show the stored schema:
#    python -m docschema.cli show
#
# 6. Reset everything:
#    python -m docschema.cli reset --confirm
#
# ==============================================

import sys
import json
import argparse
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from docschema.config import AppConfig, get_config
from docschema.ingest_and_analyse import AnalysisResult, SchemaAnalyser
from docschema.analysis.finalizer import finalize
from docschema.analysis.merger import merge_all
from docschema.persistence.snapshot_store import SnapshotStore
from docschema.sources.http_source import stream_documents
from docschema.sources.mongo_source import MongoSource
from docschema.errors import SchemaAnalysisError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docschema",
        description="Infer a statistical schema from a corpus of documents.",
    )
    parser.add_argument("--quiet", action="store_true", help="Only print the schema")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_analysis_options(p):
        p.add_argument("--shards", type=int, help="Number of shards (default from config)")
        p.add_argument("--approximate", action="store_true",
                       help="Estimate uniqueness with a HyperLogLog sketch")
        p.add_argument("--fail-fast", action="store_true",
                       help="Abort on the first malformed document")
        p.add_argument("--save-partial", metavar="NAME",
                       help="Also store the partial aggregate under NAME")
        p.add_argument("--output", metavar="PATH", help="Write the result JSON to PATH")

    analyse = sub.add_parser("analyse", help="Analyse a JSON file")
    analyse.add_argument("file", help="JSON array of documents ('-' for stdin)")
    add_analysis_options(analyse)

    mongo = sub.add_parser("mongo", help="Analyse a MongoDB collection")
    mongo.add_argument("collection", nargs="?", help="Collection name (default from config)")
    add_analysis_options(mongo)

    stream = sub.add_parser("stream", help="Analyse documents pulled from an HTTP endpoint")
    stream.add_argument("--url", help="Endpoint URL (default from config)")
    stream.add_argument("--count", type=int, default=100, help="Number of documents to fetch")
    stream.add_argument("--delay", type=float, default=0.0, help="Delay between requests")
    add_analysis_options(stream)

    merge = sub.add_parser("merge", help="Merge stored partials and finalize")
    merge.add_argument("names", nargs="*", help="Partial names (default: all stored partials)")
    merge.add_argument("--output", metavar="PATH", help="Write the schema JSON to PATH")

    sub.add_parser("show", help="Print the stored schema")

    reset = sub.add_parser("reset", help="Delete stored partials, schema and state")
    reset.add_argument("--confirm", action="store_true", help="Required to actually delete")

    return parser


def _effective_config(args) -> AppConfig:
    config = get_config()
    ingest = config.ingest
    tracker = config.tracker
    if getattr(args, "shards", None):
        ingest = replace(ingest, shard_count=args.shards, max_workers=max(ingest.max_workers, args.shards))
    if getattr(args, "fail_fast", False):
        ingest = replace(ingest, fail_fast=True)
    if getattr(args, "approximate", False):
        tracker = replace(tracker, strategy="approximate")
    return replace(config, ingest=ingest, tracker=tracker, verbose=config.verbose and not args.quiet)


def _emit(data: dict, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(text + "\n")
    else:
        print(text)


def _finish(args, config: AppConfig, result: AnalysisResult, partial=None) -> int:
    store = SnapshotStore(config.metadata_dir, verbose=config.verbose)
    if args.save_partial and partial is not None:
        store.save_partial(args.save_partial, partial)
    store.save_schema(result.schema)
    store.save_state(result.schema.count)

    _emit(result.to_dict(), args.output)
    return 0 if result.ok else 1


def cmd_analyse(args) -> int:
    config = _effective_config(args)
    analyser = SchemaAnalyser(config)
    if args.file == "-":
        text = sys.stdin.read()
    else:
        text = Path(args.file).read_text()

    result = analyser.analyse_json(text)
    return _finish(args, config, result, partial=analyser.last_aggregator)


def cmd_mongo(args) -> int:
    config = _effective_config(args)
    analyser = SchemaAnalyser(config)
    collection = args.collection or config.mongo.collection

    with MongoSource.from_config(config) as source:
        shards = source.iter_shards(collection, config.ingest.shard_count)
        result = analyser.analyse_shards(shards)

    return _finish(args, config, result, partial=analyser.last_aggregator)


def cmd_stream(args) -> int:
    config = _effective_config(args)
    analyser = SchemaAnalyser(config)
    url = args.url or config.data_stream_url

    analyser.ingest_batch(
        stream_documents(url, max_documents=args.count, delay=args.delay, verbose=config.verbose)
    )
    result = analyser.finalize()
    return _finish(args, config, result, partial=analyser.aggregator)


def cmd_merge(args) -> int:
    config = _effective_config(args)
    store = SnapshotStore(config.metadata_dir, verbose=config.verbose)
    names = args.names or store.list_partials()
    if not names:
        print("✗ No partials to merge", file=sys.stderr)
        return 1

    partials = [store.load_partial(name) for name in names]
    schema = finalize(merge_all(partials))
    store.save_schema(schema)
    store.save_state(schema.count)
    _emit(schema.to_dict(), args.output)
    return 0


def cmd_show(args) -> int:
    config = get_config()
    store = SnapshotStore(config.metadata_dir, verbose=False)
    schema = store.load_schema()
    if schema is None:
        print("✗ No schema stored yet", file=sys.stderr)
        return 1
    _emit(schema.to_dict(), None)
    return 0


def cmd_reset(args) -> int:
    if not args.confirm:
        print("Refusing to delete without --confirm", file=sys.stderr)
        return 1
    config = get_config()
    SnapshotStore(config.metadata_dir, verbose=not args.quiet).clear()
    return 0


COMMANDS = {
    "analyse": cmd_analyse,
    "mongo": cmd_mongo,
    "stream": cmd_stream,
    "merge": cmd_merge,
    "show": cmd_show,
    "reset": cmd_reset,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return COMMANDS[args.command](args)
    except SchemaAnalysisError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2
    except (FileNotFoundError, ValueError) as e:
        # missing inputs/partials, bad partial names, unknown tracker strategy
        print(f"✗ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
