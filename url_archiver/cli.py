"""Minimal CLI entrypoint for url-archiver."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any
from typing import Sequence
from uuid import uuid4

from connectors import UrlListDiscoverStage
from core.config import ArchiverDefaults, RunConfig
from core.dispatcher import Dispatcher
from core.models import RunStatus
from core.structured_logging import emit_json_event
from fetcher import HttpFetchStage
from storage import SQLiteExportStage, SQLiteRecordStore
from url_archiver import __version__


def _resolve_command_run_id(args: argparse.Namespace) -> str:
    """Resolve run_id from CLI args or create one for command-level tracing."""
    explicit = getattr(args, "run_id", None)
    if explicit:
        return str(explicit)
    return str(uuid4())


def _emit_cli_event(
    event_type: str,
    *,
    run_id: str,
    command: str,
    **payload: Any,
) -> str:
    """Emit one structured CLI event line with standard fields."""
    return emit_json_event(
        event_type=event_type,
        run_id=run_id,
        command=command,
        **payload,
    )


def _build_run_config(args: argparse.Namespace) -> RunConfig:
    """Merge CLI flags over URL_ARCHIVER_* environment variables and defaults."""
    return RunConfig.from_env(
        concurrency=args.concurrency,
        max_retries=args.max_retries,
        retry_delay_seconds=args.retry_delay,
        fetch_timeout_seconds=args.timeout,
        max_body_bytes=args.max_body_bytes,
        strict_status=True if args.strict_status else None,
    )


def _cmd_fetch(args: argparse.Namespace) -> int:
    """Fetch every URL in the input file into the SQLite store."""
    run_id = _resolve_command_run_id(args)
    config = _build_run_config(args)

    # Setup failures (store, input file) raise here, before any work starts.
    store = SQLiteRecordStore(args.db, busy_timeout_seconds=config.store_busy_timeout_seconds)
    urls = UrlListDiscoverStage().discover(args.urls, run_id)

    fetch_stage = HttpFetchStage.from_config(config)
    try:
        summary = Dispatcher(store, fetch_stage, config).run(urls, run_id=run_id)
    finally:
        fetch_stage.close()

    _emit_cli_event(
        "cli_fetch_completed",
        run_id=summary.id,
        command="fetch",
        urls=str(args.urls),
        db=str(args.db),
        status=summary.status.value,
        enqueued=summary.enqueued_count,
        saved=summary.saved_count,
        skipped=summary.skipped_count,
        duplicates=summary.duplicate_count,
        fetch_errors=summary.fetch_error_count,
        save_errors=summary.save_error_count,
        errors=summary.error_count,
        note=summary.error_message,
    )
    return 0 if summary.status == RunStatus.COMPLETED else 1


def _cmd_stats(args: argparse.Namespace) -> int:
    """Report how many records the store holds."""
    run_id = _resolve_command_run_id(args)
    db_path = Path(args.db)
    if not db_path.exists():
        raise FileNotFoundError(f"Database file not found: {db_path}")

    store = SQLiteRecordStore(db_path, initialize=False)
    _emit_cli_event(
        "cli_stats_completed",
        run_id=run_id,
        command="stats",
        db=str(db_path),
        records=store.count(),
    )
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    """Export records from SQLite with per-row schema validation."""
    run_id = _resolve_command_run_id(args)
    db_path = Path(args.db)
    if not db_path.exists():
        raise FileNotFoundError(f"Database file not found: {db_path}")

    output = Path(args.output)
    exporter = SQLiteExportStage(SQLiteRecordStore(db_path, initialize=False))
    count = exporter.export(str(output))
    _emit_cli_event(
        "cli_export_completed",
        run_id=run_id,
        command="export",
        output=str(output),
        db=str(db_path),
        exported_rows=count,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create argument parser for the url-archiver CLI."""
    parser = argparse.ArgumentParser(
        prog="url-archiver",
        description="Bulk-fetch URL bodies into a local SQLite store",
    )
    parser.add_argument("--version", action="version", version=f"url-archiver {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch every URL in a list and store the bodies",
    )
    fetch_parser.add_argument(
        "--urls",
        default=ArchiverDefaults.DEFAULT_INPUT_PATH,
        help="Line-delimited URL list",
    )
    fetch_parser.add_argument("--db", default=ArchiverDefaults.DEFAULT_DB_PATH, help="SQLite DB path")
    fetch_parser.add_argument("--run-id", help="Optional explicit run ID")
    fetch_parser.add_argument(
        "--concurrency",
        type=int,
        help="Max in-flight fetch+save operations (default: 2 x CPU count)",
    )
    fetch_parser.add_argument(
        "--max-retries",
        type=int,
        help="Additional save attempts after the first failure",
    )
    fetch_parser.add_argument(
        "--retry-delay",
        type=float,
        help="Seconds to wait between save attempts",
    )
    fetch_parser.add_argument(
        "--timeout",
        type=float,
        help="Per-fetch timeout in seconds (default: none)",
    )
    fetch_parser.add_argument(
        "--max-body-bytes",
        type=int,
        help="Fail fetches whose body exceeds this size (default: unlimited)",
    )
    fetch_parser.add_argument(
        "--strict-status",
        action="store_true",
        help="Treat non-2xx HTTP responses as fetch failures",
    )
    fetch_parser.set_defaults(func=_cmd_fetch)

    stats_parser = subparsers.add_parser(
        "stats",
        help="Report the number of stored records",
    )
    stats_parser.add_argument("--db", default=ArchiverDefaults.DEFAULT_DB_PATH, help="SQLite DB path")
    stats_parser.set_defaults(func=_cmd_stats)

    export_parser = subparsers.add_parser(
        "export",
        help="Write JSONL export from SQLite with schema validation",
    )
    export_parser.add_argument("--output", required=True, help="Output JSONL path")
    export_parser.add_argument("--db", default=ArchiverDefaults.DEFAULT_DB_PATH, help="SQLite DB path")
    export_parser.add_argument("--run-id", help="Optional explicit run ID for logging")
    export_parser.set_defaults(func=_cmd_export)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Execute CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        return int(args.func(args))
    except Exception as exc:
        run_id = _resolve_command_run_id(args)
        _emit_cli_event(
            "cli_error",
            run_id=run_id,
            command=str(getattr(args, "command", "unknown")),
            level="error",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return 1


def cli() -> None:
    """Console-script entrypoint."""
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
