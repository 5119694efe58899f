from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from dataclasses import asdict
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from attributor import __version__
from attributor.app import (
    build_cache,
    build_reporting_service,
    cached_dashboard,
    resume_source_sync,
    sync_options,
    sync_sources,
)
from attributor.config import ConfigurationError, configure_logging
from attributor.domain.errors import AttributorError
from attributor.domain.model import Source

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from attributor.domain.model import SyncCheckpoint
    from attributor.domain.reporting import ReportingService

log = logging.getLogger(__name__)

REPORTS = ("dashboard", "confidence", "consistency", "completeness", "conversion", "accuracy")

# Set by SIGINT; running syncs pause at the next record boundary.
CANCEL = threading.Event()


def _source(value: str) -> Source:
    try:
        return Source(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(str(source) for source in Source)
        raise argparse.ArgumentTypeError(f"unknown source {value!r} (use {choices})") from exc


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be non-negative")
    return number


def _positive(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _add_budget_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--limit",
        type=_positive,
        help="Stop after this many committed records (defaults to config)",
    )
    parser.add_argument(
        "--timeout-ms",
        type=_non_negative,
        help="Stop after this many milliseconds (defaults to config)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve contacts and attribute conversions")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Start a fresh sync of one or more sources")
    sync.add_argument(
        "--source",
        dest="sources",
        type=_source,
        action="append",
        help="Source to sync; repeat for several (default: every configured source)",
    )
    _add_budget_arguments(sync)

    resume = subparsers.add_parser("resume", help="Continue a paused or failed sync")
    resume.add_argument("token", help="Resume token printed by a previous sync")
    _add_budget_arguments(resume)

    status = subparsers.add_parser("status", help="Show sync checkpoints")
    status.add_argument(
        "--source",
        dest="sources",
        type=_source,
        action="append",
        help="Source to show; repeat for several (default: all)",
    )

    report = subparsers.add_parser("report", help="Print attribution and quality reports")
    report.add_argument("name", nargs="?", choices=REPORTS, default="dashboard")
    report.add_argument(
        "--contact-id",
        type=int,
        help="Print the attribution record of one contact instead",
    )

    return parser.parse_args(list(argv))


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))  # noqa: T201


def _checkpoint_dict(checkpoint: SyncCheckpoint) -> dict[str, object]:
    return {
        "source": checkpoint.source,
        "status": checkpoint.status,
        "cursor": checkpoint.cursor,
        "page_offset": checkpoint.page_offset,
        "processed_count": checkpoint.processed_count,
        "total": checkpoint.total,
        "last_attempt_at": checkpoint.last_attempt_at,
        "last_error": checkpoint.last_error,
    }


def _report(service: ReportingService, name: str) -> object:
    match name:
        case "confidence":
            return asdict(service.confidence_report())
        case "consistency":
            return asdict(service.field_consistency_report())
        case "completeness":
            return asdict(service.completeness_report())
        case "conversion":
            return asdict(service.conversion_summary())
        case "accuracy":
            return asdict(service.accuracy())
        case _:
            return cached_dashboard(service, build_cache())


def _run(args: argparse.Namespace) -> int:
    if args.command == "sync":
        options = sync_options(limit=args.limit, timeout_ms=args.timeout_ms, cancel=CANCEL)
        outcome = sync_sources(args.sources, options=options)
        _emit(
            {
                "results": {str(src): asdict(res) for src, res in outcome.results.items()},
                "failures": {
                    str(src): {
                        "error": str(exc),
                        "resume_token": getattr(exc, "resume_token", None),
                    }
                    for src, exc in outcome.failures.items()
                },
            }
        )
        return 1 if outcome.failures else 0

    if args.command == "resume":
        options = sync_options(limit=args.limit, timeout_ms=args.timeout_ms, cancel=CANCEL)
        _emit(asdict(resume_source_sync(args.token, options=options)))
        return 0

    service = build_reporting_service()
    if args.command == "status":
        sources = args.sources or list(Source)
        _emit([_checkpoint_dict(service.sync_status(source)) for source in sources])
        return 0

    if args.command == "report":
        if args.contact_id is not None:
            record = service.attribution_for(args.contact_id)
            if record is None:
                log.error("No attribution record for contact %s", args.contact_id)
                return 1
            _emit(asdict(record))
            return 0
        _emit(_report(service, args.name))
        return 0

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        configure_logging(level=logging.DEBUG if parsed_args.verbose else None)
    except ConfigurationError as exc:
        sys.exit(f"attributor: {exc}")

    try:
        code = _run(parsed_args)
    except (AttributorError, ConfigurationError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if code:
        sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """First Ctrl+C pauses the running sync; a second one exits."""
    if CANCEL.is_set():
        log.info("Closed by user (Ctrl+C)")
        sys.exit(130)
    log.info("Cancelling; the sync pauses at the next record boundary")
    CANCEL.set()


def entrypoint() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    entrypoint()
