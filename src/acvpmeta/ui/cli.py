# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from acvpmeta.app import (
    list_definitions,
    reconcile_operational_environments,
    resolve_pending_requests,
)
from acvpmeta.config import ReconcileOptions, configure_logging, level_for_verbosity
from acvpmeta.config.reconcile import DEFAULT_WORKERS
from acvpmeta.domain.locking import release_all
from acvpmeta.domain.reconciliation import AutoApprovePolicy
from acvpmeta.domain.registry import SearchCriteria
from acvpmeta.domain.types import EntityKind
from acvpmeta.ui.prompts import InteractivePolicy

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from acvpmeta.app import SyncResult

log = logging.getLogger(__name__)

_KINDS = [kind.value for kind in EntityKind]


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--definitions",
        type=Path,
        required=True,
        help="JSON file declaring modules, vendors and operational environments",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log output (repeatable)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile operational environment metadata with a validation server"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Validate and register OEs and dependencies")
    _add_common(sync)
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the requests that would be submitted without sending them",
    )
    sync.add_argument(
        "--yes",
        action="store_true",
        help="Submit every needed request without asking",
    )
    sync.add_argument(
        "--show",
        action="store_true",
        help="Only search the server and report what matches",
    )
    sync.add_argument(
        "--delete",
        action="append",
        choices=_KINDS,
        default=[],
        help="Delete the server record of this entity kind (repeatable)",
    )
    sync.add_argument(
        "--update",
        action="append",
        choices=_KINDS,
        default=[],
        help="Update the server record of this entity kind even if it matches (repeatable)",
    )
    sync.add_argument(
        "--delete-oe",
        action="store_true",
        help="Shorthand for --delete oe",
    )
    sync.add_argument(
        "--update-oe",
        action="store_true",
        help="Shorthand for --update oe",
    )
    sync.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help="Number of OEs reconciled in parallel (default: %(default)s)",
    )

    requests = subparsers.add_parser("requests", help="Resolve outstanding server requests")
    _add_common(requests)
    requests.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help="Number of OEs polled in parallel (default: %(default)s)",
    )

    listing = subparsers.add_parser("list", help="List definitions")
    _add_common(listing)
    listing.add_argument("--module", type=str, help="Module name")
    listing.add_argument("--vendor", type=str, help="Vendor name")
    listing.add_argument("--env", type=str, help="Environment name")
    listing.add_argument("--processor", type=str, help="Processor name or series")
    listing.add_argument(
        "--fuzzy",
        action="store_true",
        help="Match names case-insensitively by substring",
    )

    return parser.parse_args(list(argv))


def _build_options(args: argparse.Namespace) -> ReconcileOptions:
    if args.dry_run and args.show:
        raise ValueError("--dry-run and --show cannot be combined")
    delete = {EntityKind(kind) for kind in args.delete}
    update = {EntityKind(kind) for kind in args.update}
    if args.delete_oe:
        delete.add(EntityKind.OE)
    if args.update_oe:
        update.add(EntityKind.OE)
    if delete & update:
        kinds = ", ".join(sorted(delete & update))
        raise ValueError(f"Cannot both delete and update: {kinds}")
    return ReconcileOptions(
        dry_run=args.dry_run,
        auto_register=args.yes,
        show_only=args.show,
        delete=frozenset(delete),
        update=frozenset(update),
        workers=args.workers,
    )


def _report(result: SyncResult) -> None:
    for record in result.records:
        if record.report is None:
            detail = f" ({record.error})" if record.error else ""
            log.info("%s: %s%s", record.record_key, record.status, detail)
            continue
        outcomes = ", ".join(
            f"{kind}={outcome.state} [{outcome.identifier}]"
            for kind, outcome in record.report.outcomes.items()
        )
        log.info("%s: %s", record.record_key, outcomes)


def _print_definitions(args: argparse.Namespace) -> None:
    criteria = SearchCriteria(
        module_name=args.module,
        vendor_name=args.vendor,
        env_name=args.env,
        processor=args.processor,
        fuzzy=args.fuzzy,
    )
    for definition in list_definitions(args.definitions, criteria):
        oe = definition.oe
        print(f"{definition.module.name} {definition.module.version or ''}".rstrip())
        print(f"  vendor:     {definition.vendor.name}")
        print(f"  oe:         {oe.key} ({oe.env_type})")
        print(f"  ids:        oe={oe.oe_id} software={oe.software_id} processor={oe.processor_id}")
        if definition.algorithms:
            print(f"  algorithms: {', '.join(definition.algorithms)}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    verbosity = -1 if parsed_args.quiet else parsed_args.verbose
    configure_logging(level=level_for_verbosity(verbosity))

    options: ReconcileOptions | None = None
    try:
        if parsed_args.command == "sync":
            options = _build_options(parsed_args)
        elif parsed_args.command == "requests" and parsed_args.workers < 1:
            raise ValueError("--workers must be at least 1")  # noqa: TRY301
        if not parsed_args.definitions.is_file():
            missing = parsed_args.definitions
            raise ValueError(f"Definitions file not found: {missing}")  # noqa: TRY301
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "sync" and options is not None:
            policy = AutoApprovePolicy() if options.auto_register else InteractivePolicy()
            result = reconcile_operational_environments(
                parsed_args.definitions,
                options=options,
                policy=policy,
            )
        elif parsed_args.command == "requests":
            result = resolve_pending_requests(
                parsed_args.definitions,
                workers=parsed_args.workers,
            )
        elif parsed_args.command == "list":
            _print_definitions(parsed_args)
            return
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)
    finally:
        release_all()

    _report(result)
    if result.failed:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
