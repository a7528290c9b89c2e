"""Standalone CLI for indexing documents and querying the chunk index.

Usage::

    python -m ragdesk.cli.ingest index --file /path/to/handbook.pdf --org acme

    python -m ragdesk.cli.ingest search --org acme --query "refund policy" --limit 5

    python -m ragdesk.cli.ingest status --document-id handbook.pdf

Components are assembled exactly as the web application assembles them
(``ragdesk.main._build_all``), so the CLI and the API share one database.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from ragdesk.config.settings import Settings
from ragdesk.utils.errors import RagDeskError


async def _initialize(components: dict[str, Any]) -> None:
    await components["chunk_store"].initialize()
    await components["status_store"].initialize()


def _build_components(app_settings: Settings) -> dict[str, Any]:
    from ragdesk.main import _build_all

    return _build_all(app_settings)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_index(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Store and index one local file."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    document_id = args.document_id or path.name
    content_type = args.content_type or mimetypes.guess_type(path.name)[0]
    data = path.read_bytes()

    print(f"Indexing {path} as {document_id} (org {args.org})")

    await _initialize(components)
    await components["document_source"].store(document_id, args.org, data, content_type)
    status = await components["indexing_service"].index_document(
        document_id, args.org, data, content_type
    )

    print("\nIndexing complete:")
    print(f"  Status:       {status.status.value}")
    print(f"  Total chunks: {status.total_chunks}")
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Run a hybrid search and print the ranked results."""
    await _initialize(components)
    results = await components["search_engine"].search(args.query, args.org, limit=args.limit)

    if not results:
        print("No results.")
        return 0

    for rank, result in enumerate(results, start=1):
        snippet = result.content[:160].replace("\n", " ")
        print(f"{rank:>3}. [{result.score:.3f}] {result.title or result.document_id}")
        print(f"     {snippet}")
    return 0


async def _handle_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Print the stored indexing status of a document."""
    await _initialize(components)
    status = await components["indexing_service"].get_indexing_status(args.document_id)
    if status is None:
        print(f"No indexing status for {args.document_id}")
        return 1

    print(f"Document:     {status.document_id}")
    print(f"Organization: {status.organization_id}")
    print(f"Status:       {status.status.value}")
    print(f"Progress:     {status.progress}%")
    print(f"Chunks:       {status.processed_chunks}/{status.total_chunks}")
    if status.error_message:
        print(f"Error:        {status.error_message}")
    return 0


_HANDLERS = {
    "index": _handle_index,
    "search": _handle_search,
    "status": _handle_status,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m ragdesk.cli.ingest",
        description="Index documents and query the ragdesk chunk index.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- index --
    index_parser = subparsers.add_parser("index", help="Index a PDF or text file")
    index_parser.add_argument("--file", required=True, help="Path to the document")
    index_parser.add_argument("--org", required=True, help="Owning organization id")
    index_parser.add_argument(
        "--document-id",
        dest="document_id",
        default=None,
        help="Document id (default: the file name)",
    )
    index_parser.add_argument(
        "--content-type",
        dest="content_type",
        default=None,
        help="MIME type (default: guessed from the file name)",
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Hybrid search within an organization")
    search_parser.add_argument("--org", required=True, help="Organization id")
    search_parser.add_argument("--query", required=True, help="Search text")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (1-100)")

    # -- status --
    status_parser = subparsers.add_parser("status", help="Show a document's indexing status")
    status_parser.add_argument("--document-id", dest="document_id", required=True)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, build components, dispatch."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    components = _build_components(Settings())
    handler = _HANDLERS[args.command]
    try:
        exit_code = asyncio.run(handler(args, components))
    except RagDeskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
