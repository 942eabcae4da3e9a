"""Command-line tool for managing the docindex document collection.

Usage::

    python -m docindex.cli.ingest upload --file report.pdf --user alice
    python -m docindex.cli.ingest list --status error
    python -m docindex.cli.ingest search --query "quarterly revenue" --top 5
    python -m docindex.cli.ingest stats
    python -m docindex.cli.ingest delete --id doc_1700000000000_abc123xyz --yes

``upload`` runs the same pipeline as the API but waits for background
processing to finish before printing the document's final status.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from docindex.config.settings import Settings
from docindex.models.document import DocumentStatus, UploadedFile
from docindex.utils.errors import DocIndexError


def _build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct the same provider graph the web app uses.

    The import is deferred so ``--help`` does not load chromadb or PyMuPDF.
    """
    from docindex.main import _build_all

    return _build_all(app_settings)


async def _initialize(components: dict[str, Any], need_search: bool = False) -> None:
    await components["metadata_store"].initialize()
    if need_search:
        await components["document_service"].ensure_search_is_configured()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_upload(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Upload one file and wait for it to reach a terminal status."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    await _initialize(components, need_search=True)
    pipeline = components["pipeline"]
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    print(f"Uploading: {path.name} ({path.stat().st_size} bytes) as {args.user}")
    result = await pipeline.upload(
        UploadedFile(
            file_name=path.name,
            content_type=content_type,
            data=path.read_bytes(),
            uploaded_by=args.user,
        )
    )
    if not result.success:
        print(f"Rejected: {result.message}", file=sys.stderr)
        return 1

    await pipeline.task_runner.drain()
    info = await components["document_service"].get_document(result.document_id)

    print("\nProcessing complete:")
    print(f"  Document ID: {info.id}")
    print(f"  Status:      {info.status.value}")
    print(f"  Pages:       {info.pages}")
    print(f"  Confidence:  {info.confidence:.2f}")
    return 0 if info.status is DocumentStatus.COMPLETED else 2


async def _handle_list(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await _initialize(components)
    status = DocumentStatus(args.status) if args.status else None
    documents = await components["document_service"].list_documents(
        uploaded_by=args.user, status=status, file_type=None, name_contains=args.name
    )
    if not documents:
        print("No documents.")
        return 0
    for doc in documents:
        print(
            f"{doc.id}  {doc.status.value:<10}  {doc.file_size:>10}  "
            f"{doc.uploaded_by:<16}  {doc.file_name}"
        )
    print(f"\n{len(documents)} document(s)")
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await _initialize(components, need_search=True)
    results = await components["document_service"].search(args.query, top=args.top)
    if not results:
        print("No matches.")
        return 0
    for rank, hit in enumerate(results, start=1):
        print(f"{rank:>2}. [{hit.score:.3f}] {hit.file_name} ({hit.id})")
        for snippet in hit.highlights[:2]:
            print(f"      ...{snippet}...")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    """Print document totals and search index counts."""
    await _initialize(components)
    stats = await components["document_service"].stats()

    print("Document Statistics")
    print("=" * 40)
    print(f"  Total documents: {stats.total}")
    print(f"  Total size:      {stats.total_size} bytes")
    if stats.by_status:
        print("\n  By status:")
        for status, count in sorted(stats.by_status.items()):
            print(f"    {status:<20} {count}")
    if stats.by_type:
        print("\n  By file type:")
        for file_type, count in sorted(stats.by_type.items(), key=lambda kv: -kv[1]):
            print(f"    {file_type:<30} {count}")
    if stats.index_stats:
        print("\n  Search index:")
        for key, value in stats.index_stats.items():
            print(f"    {key:<20} {value}")
    return 0


async def _handle_delete(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete a document's bytes, index entry and record.

    This is a destructive operation.  Requires confirmation unless --yes
    is passed.
    """
    await _initialize(components)
    service = components["document_service"]
    info = await service.get_document(args.id)

    if not args.yes:
        answer = input(f"Delete '{info.file_name}' ({info.id})? [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            print("Aborted.")
            return 1

    await service.delete(args.id)
    print(f"Deleted {args.id}")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the document CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m docindex.cli.ingest",
        description="Manage the docindex document collection.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Document commands")

    # -- upload --
    upload_parser = subparsers.add_parser("upload", help="Upload and index a file")
    upload_parser.add_argument("--file", required=True, help="Path to the file")
    upload_parser.add_argument("--user", default="anonymous", help="Owner id (default: anonymous)")

    # -- list --
    list_parser = subparsers.add_parser("list", help="List documents")
    list_parser.add_argument("--user", default=None, help="Only this owner's documents")
    list_parser.add_argument(
        "--status",
        choices=[s.value for s in DocumentStatus],
        default=None,
        help="Only documents in this status",
    )
    list_parser.add_argument("--name", default=None, help="File name substring")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Search indexed documents")
    search_parser.add_argument("--query", required=True, help="Search text")
    search_parser.add_argument("--top", type=int, default=10, help="Maximum results (default: 10)")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("--id", required=True, help="Document id")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    # -- stats --
    subparsers.add_parser("stats", help="Show collection statistics")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse the subcommand and dispatch to its handler."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    components = _build_components(Settings())

    handlers = {
        "upload": lambda: _handle_upload(args, components),
        "list": lambda: _handle_list(args, components),
        "search": lambda: _handle_search(args, components),
        "delete": lambda: _handle_delete(args, components),
        "stats": lambda: _handle_stats(components),
    }

    try:
        exit_code = asyncio.run(handlers[args.command]())
    except DocIndexError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
