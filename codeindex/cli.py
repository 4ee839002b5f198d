"""
codeindex - semantic code indexing from the command line.

Usage:
    codeindex parse-file src/main.rs                    # entities of one file as JSON
    codeindex parse-file main.rs --root ./project       # resolve a partial path
    codeindex parse-dir ./project -e rs ts -o index.json
    codeindex embed index.json embedded.json            # needs OPENAI_API_KEY
    codeindex upsert embedded.json --collection code
    codeindex query --collection code "parse config file"
    codeindex build-index ./project -e rs --collection code

Configuration:
    Environment variables OPENAI_API_KEY, OPENAI_API_BASE, EMBEDDING_MODEL,
    QDRANT_URL, QDRANT_API_KEY and CODEINDEX_COLLECTION provide defaults;
    command-line options override them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import load_config
from .core.embeddings import generate_embeddings_for_index, make_embedder
from .core.models import Entity
from .exceptions import CodeIndexError, ExtractionError
from .indexing import build_index, index_directory, parse_directory, parse_file, query_collection
from .schemas import BuildIndexRequest, IndexRequest, QueryRequest
from .storage import create_vector_store, upsert_from_file
from .utils import find_file_by_suffix, write_entities_json

logger = logging.getLogger("codeindex")


def _emit(entities: List[Entity], output: Optional[str]) -> None:
    if output:
        write_entities_json(entities, output)
    else:
        json.dump([e.to_dict() for e in entities], sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")


def _resolve_path(path: str, root: Optional[str]) -> Path:
    candidate = Path(path)
    if candidate.exists() or root is None:
        return candidate
    found = find_file_by_suffix(root, path)
    if found is None:
        raise ExtractionError(f"No file matching '{path}' under {root}")
    logger.info(f"Resolved '{path}' to {found}")
    return found


def cmd_parse_file(args) -> int:
    path = _resolve_path(args.path, args.root)
    entities = parse_file(path, max_snippet_size=args.max_snippet_size)
    _emit(entities, args.output)
    return 0


def _index_request(args) -> IndexRequest:
    cfg = load_config()
    return IndexRequest(
        root_dir=args.root,
        extensions=args.extensions or cfg["extensions"],
        exclude_dirs=args.exclude_dirs if args.exclude_dirs is not None else cfg["exclude_dirs"],
        max_snippet_size=args.max_snippet_size,
        granularity=args.granularity,
    )


def cmd_parse_dir(args) -> int:
    req = _index_request(args)
    if args.output:
        count = index_directory(
            req.root_dir, req.extensions, args.output, req.exclude_dirs, req.max_snippet_size, req.granularity
        )
        print(f"Indexed {count} entities into {args.output}")
        return 0
    result = parse_directory(req.root_dir, req.extensions, req.exclude_dirs, req.max_snippet_size, req.granularity)
    _emit(result.entities, None)
    return 0


def cmd_embed(args) -> int:
    cfg = load_config()
    count = asyncio.run(
        generate_embeddings_for_index(
            Path(args.input),
            Path(args.output),
            cfg,
            model=args.model,
            api_key=args.api_key,
            api_base=args.api_base,
        )
    )
    print(f"{count} entities with embeddings written to {args.output}")
    return 0


def cmd_upsert(args) -> int:
    cfg = load_config({"vector_store": {"qdrant": {"url": args.qdrant_url}}})
    store = create_vector_store(cfg)
    count = upsert_from_file(store, args.collection, args.input)
    print(f"Upserted {count} points into '{args.collection}'")
    return 0


def cmd_query(args) -> int:
    req = QueryRequest(collection=args.collection, text=args.text, top_k=args.top_k)
    cfg = load_config({
        "embedding": {"model": args.model, "api_key": args.api_key, "api_base": args.api_base},
        "vector_store": {"qdrant": {"url": args.qdrant_url}},
    })
    store = create_vector_store(cfg, make_embedder(cfg))
    entities = query_collection(cfg, req.collection, req.text, req.top_k, store=store)
    _emit(entities, args.output)
    return 0


def cmd_build_index(args) -> int:
    base = _index_request(args)
    req = BuildIndexRequest(
        **base.model_dump(),
        collection=args.collection,
        qdrant_url=args.qdrant_url,
        embedding={"model": args.model, "api_key": args.api_key, "api_base": args.api_base},
    )
    cfg = load_config(req.config_overrides())
    report = asyncio.run(
        build_index(
            req.root_dir,
            cfg,
            req.collection,
            extensions=req.extensions,
            exclude_dirs=req.exclude_dirs,
            max_snippet_size=req.max_snippet_size,
            granularity=req.granularity,
        )
    )
    print(
        f"Files: {report.files_found} found, {report.files_skipped} skipped. "
        f"Entities: {report.entities}, embedded {report.embedded}, upserted {report.upserted} "
        f"into '{report.collection}'"
    )
    return 0


def _add_index_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("root", help="Directory to index")
    parser.add_argument("-e", "--extensions", nargs="+", default=None, help="File extensions (default: rs ts tsx)")
    parser.add_argument("--exclude-dirs", nargs="*", default=None, help="Directory names to skip")
    parser.add_argument("--max-snippet-size", type=int, default=None, help="Split/merge size bound in characters")
    parser.add_argument("--granularity", choices=["fine", "medium", "coarse"], default="fine")


def _add_embedding_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--model", default=None, help="Embedding model (default: text-embedding-3-small)")
    parser.add_argument("--api-key", default=None, help="API key (default: OPENAI_API_KEY)")
    parser.add_argument("--api-base", default=None, help="API base URL (default: OPENAI_API_BASE)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codeindex", description="Semantic code indexing")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse-file", help="Extract entities from one file")
    p.add_argument("path", help="File path, or a path suffix when --root is given")
    p.add_argument("--root", default=None, help="Directory to resolve a partial path under")
    p.add_argument("--max-snippet-size", type=int, default=None)
    p.add_argument("-o", "--output", default=None, help="Write JSON here instead of stdout")
    p.set_defaults(func=cmd_parse_file)

    p = sub.add_parser("parse-dir", help="Extract entities from a directory tree")
    _add_index_options(p)
    p.add_argument("-o", "--output", default=None, help="Write JSON here instead of stdout")
    p.set_defaults(func=cmd_parse_dir)

    p = sub.add_parser("embed", help="Add embeddings to a JSON entity index")
    p.add_argument("input")
    p.add_argument("output")
    _add_embedding_options(p)
    p.set_defaults(func=cmd_embed)

    p = sub.add_parser("upsert", help="Upsert an embedded JSON index into Qdrant")
    p.add_argument("input")
    p.add_argument("--collection", required=True)
    p.add_argument("--qdrant-url", default=None)
    p.set_defaults(func=cmd_upsert)

    p = sub.add_parser("query", help="Search a collection")
    p.add_argument("text")
    p.add_argument("--collection", required=True)
    p.add_argument("--top-k", type=int, default=10)
    p.add_argument("--qdrant-url", default=None)
    p.add_argument("-o", "--output", default=None)
    _add_embedding_options(p)
    p.set_defaults(func=cmd_query)

    p = sub.add_parser("build-index", help="Parse, embed and upsert a directory")
    _add_index_options(p)
    p.add_argument("--collection", required=True)
    p.add_argument("--qdrant-url", default=None)
    _add_embedding_options(p)
    p.set_defaults(func=cmd_build_index)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except ValidationError as e:
        print(f"Error: invalid arguments\n{e}", file=sys.stderr)
        return 2
    except CodeIndexError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
