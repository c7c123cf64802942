"""Command-line entry point for the Recovery Advisor.

``serve`` (the default) launches the Streamlit interface. ``reindex``,
``ingest`` and ``search`` work on the document index directly.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from advisor.config import config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

    from advisor.pipeline import RAGPipeline

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "streamlit_app.py"
COMMANDS = ("serve", "reindex", "ingest", "search")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Read the subcommand and its options; ``serve`` when none is given."""  # noqa: DOC201
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in {*COMMANDS, "-h", "--help"}:
        argv.insert(0, "serve")

    parser = argparse.ArgumentParser(
        description="Recovery Advisor: fire recovery answers from indexed documents.",
    )
    index_options = argparse.ArgumentParser(add_help=False)
    index_options.add_argument(
        "--backend",
        choices=("faiss", "sqlite"),
        default=None,
        help="Vector store backend (default: VECTOR_BACKEND).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Launch the Streamlit interface.")
    serve.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: streamlit_app.py).",
    )
    serve.add_argument("--port", type=int, default=8501)
    serve.add_argument("--address", default="localhost")
    serve.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open a browser window instead of running headless.",
    )
    serve.set_defaults(headless=True)

    commands.add_parser(
        "reindex",
        parents=[index_options],
        help="Rebuild the index from every jurisdiction directory.",
    )

    ingest = commands.add_parser(
        "ingest", parents=[index_options], help="Index or re-index one document."
    )
    ingest.add_argument("path", type=Path)
    ingest.add_argument(
        "--jurisdiction",
        choices=config.JURISDICTIONS,
        default=None,
        help="Jurisdiction stored with the document's chunks.",
    )

    search = commands.add_parser(
        "search", parents=[index_options], help="Print the nearest chunks."
    )
    search.add_argument("query")
    search.add_argument("--top-k", type=int, default=config.SEARCH_TOP_K)

    return parser.parse_args(argv)


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("Recovery Advisor stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    return result.returncode


def build_pipeline(backend: str | None) -> RAGPipeline:
    from advisor.pipeline import RAGPipeline  # noqa: PLC0415

    return RAGPipeline(vector_backend=backend)


def serve(args: argparse.Namespace, logger: Logger) -> int:
    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting Recovery Advisor at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )
    return_code = run_streamlit(
        build_streamlit_command(
            script_path,
            port=args.port,
            headless=args.headless,
            address=args.address,
        ),
        logger,
    )
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


def reindex(args: argparse.Namespace, logger: Logger) -> int:
    """Ingest every jurisdiction's documents once and report failures."""  # noqa: DOC201
    report = build_pipeline(args.backend).reindex()
    logger.info(
        "Indexed %d chunks from %d documents", report.chunks, report.documents
    )
    for path, error in report.failures.items():
        logger.error("Failed to ingest %s: %s", path, error)
    return 0 if report.ok else 1


def ingest(args: argparse.Namespace, logger: Logger) -> int:
    if not args.path.is_file():
        logger.error("Document not found: %s", args.path)
        return 1
    try:
        written = build_pipeline(args.backend).process_document(
            args.path, args.jurisdiction
        )
    except (OSError, ValueError):
        logger.exception("Failed to ingest %s", args.path)
        return 1
    logger.info("Indexed %d chunks from %s", written, args.path.name)
    return 0


def search(args: argparse.Namespace, logger: Logger) -> int:
    pipeline = build_pipeline(args.backend)
    pipeline.warm_up()
    matches = pipeline.search(args.query, top_k=args.top_k)
    if not matches:
        logger.warning("The index is empty; run the reindex command first")
        return 1
    for match in matches:
        print(f"{match.distance:.4f}  {match.source}#{match.chunk_index}")  # noqa: T201
        print(f"    {match.text}")  # noqa: T201
    return 0


HANDLERS = {"serve": serve, "reindex": reindex, "ingest": ingest, "search": search}


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration, then run the requested command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    return HANDLERS[args.command](args, logger)


if __name__ == "__main__":
    sys.exit(main())
