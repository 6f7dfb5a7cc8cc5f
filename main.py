"""CLI entrypoint: fetch BibTeX from web indices and pick what to keep."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, TextIO

from dotenv import load_dotenv

from backends import build_default_registry
from config import Settings, parse_backend_list, parse_timeout
from errors import BibfetchError
from extractor import extract_entries
from models import BibEntry, Query
from orchestrator import retrieve
from registry import BackendRegistry
from session import OutcomeKind, SelectionSession
from terminal import prompt_line, prompt_path, run_session, stderr_input
from writer import append_entries, choose_target, discover_default_bibliography


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        description="Retrieve BibTeX records from web bibliography indices and select the ones to keep",
    )
    parser.add_argument("query", nargs="*", help="Free-text query (prompted for when omitted)")
    parser.add_argument("--author", default=None, help="Restrict to an author, where the backend supports it")
    parser.add_argument("--title", default=None, help="Restrict to title words, where the backend supports it")
    parser.add_argument(
        "--extended",
        action="store_true",
        help="Also prompt for the backend set (default | all | <name>) and a timeout override",
    )
    parser.add_argument(
        "--backends",
        default=None,
        help="Comma-separated backends to query, or 'all' (default: BIBFETCH_BACKENDS or arxiv,msn,zbm)",
    )
    parser.add_argument("--timeout", default=None, help="Timeout override in seconds for every backend, or 'none'")
    parser.add_argument(
        "--document",
        type=Path,
        default=None,
        help="Document being edited; its bibliography becomes the default append target",
    )
    parser.add_argument("--bib", type=Path, default=None, help="Default bibliography file for append commands")
    parser.add_argument("--list-backends", action="store_true", help="List the available backends and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def resolve_backends(choice: str | None, registry: BackendRegistry, settings: Settings) -> list[str]:
    """Turn ``default`` / ``all`` / a name / a comma list into backend ids."""
    if choice is None or not choice.strip() or choice.strip() == "default":
        return list(settings.default_backends)
    if choice.strip() == "all":
        return registry.ids()
    return parse_backend_list(choice)


def build_query(args: argparse.Namespace, reader: Callable[[str], str] = stderr_input) -> Query:
    text = " ".join(args.query).strip()
    if not text and not args.author and not args.title:
        text = (prompt_line("Query: ", reader) or "").strip()
    return Query(text=text, author=args.author, title=args.title)


def default_target(args: argparse.Namespace, settings: Settings) -> Path | None:
    return args.bib or discover_default_bibliography(args.document) or settings.bib_file


def run(
    args: argparse.Namespace,
    settings: Settings,
    reader: Callable[[str], str] = stderr_input,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Run one query-select-commit cycle; returns the process exit code."""
    if out is None:
        out = sys.stdout
    if err is None:
        err = sys.stderr
    registry = build_default_registry(timeouts=settings.timeouts, max_results=settings.max_results)

    if args.list_backends:
        for backend_id in registry.ids():
            descriptor = registry.resolve(backend_id)
            default = "" if backend_id not in settings.default_backends else " (default)"
            print(f"{backend_id:10s} timeout={descriptor.default_timeout}s  {descriptor.description}{default}", file=out)
        return 0

    query = build_query(args, reader)
    if query.is_blank():
        print("Nothing to search for.", file=err)
        return 1

    backend_choice = args.backends
    timeout_raw = args.timeout
    if args.extended:
        backend_choice = prompt_line("Backends (default | all | <name>) [default]: ", reader) or backend_choice
        timeout_raw = prompt_line("Timeout override in seconds [backend defaults]: ", reader) or timeout_raw
    backend_ids = resolve_backends(backend_choice, registry, settings)
    timeout = parse_timeout(timeout_raw, source="--timeout") if timeout_raw else None

    logging.info("Querying backends=%s timeout=%s query=%r", ",".join(backend_ids), timeout, query.describe())
    report = retrieve(query, backend_ids, registry, timeout=timeout)
    for failure in report.failures:
        print(f"warning: {failure.backend_id}: {failure.error}", file=err)

    entries = extract_entries(report.results)

    default = default_target(args, settings)

    def append(selected: list[BibEntry]) -> Path:
        target = choose_target(lambda question, dflt: prompt_path(question, dflt, reader), default)
        return append_entries(selected, target)

    session = SelectionSession(result_set=entries, append=append)
    outcome = run_session(session, reader=reader, out=err)

    if outcome.kind is OutcomeKind.SELECTED:
        if outcome.entries:
            print("\n\n".join(entry.raw_text for entry in outcome.entries), file=out)
    else:
        print(outcome.message, file=err)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one retrieval session."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = Settings.from_env()
        return run(args, settings)
    except (BibfetchError, ValueError) as exc:
        print(f"bibfetch: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Aborted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
