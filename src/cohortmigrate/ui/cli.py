# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from getpass import getpass
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cohortmigrate.app import (
    activate_emergency_disable,
    classify_cohort,
    clear_emergency_disable,
    complete_password_reset,
    emergency_status,
    execute_migration,
    recent_violations,
    rollback_identity,
    run_sample_migration,
)
from cohortmigrate.config import ConfigurationError, configure_logging
from cohortmigrate.domain.errors import ConfirmationDeclined, MigrationError
from cohortmigrate.domain.guard import (
    ConfirmationRequest,
    ConfirmationResponse,
    phrase_token,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from cohortmigrate.domain.guard import ConfirmationProvider
    from cohortmigrate.domain.model import MigrationReport

log = logging.getLogger(__name__)


def _add_confirmation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--purpose",
        type=str,
        help="Reason for this run, recorded in the log (prompted for if omitted)",
    )
    parser.add_argument(
        "--confirm-phrase",
        type=str,
        help="Confirmation phrase for non-interactive runs (prompted for if omitted)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate a customer cohort into identities")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    classify = subparsers.add_parser("classify", help="Classify the cohort without mutating")
    classify.add_argument("--json", action="store_true", help="Print the full report as JSON")

    sample = subparsers.add_parser("sample", help="Migrate a small sample of the cohort")
    sample.add_argument("--json", action="store_true", help="Print the full report as JSON")
    _add_confirmation_args(sample)

    execute = subparsers.add_parser("execute", help="Migrate the whole cohort")
    execute.add_argument("--json", action="store_true", help="Print the full report as JSON")
    _add_confirmation_args(execute)

    rollback = subparsers.add_parser("rollback", help="Restore one identity from its snapshot")
    rollback.add_argument("identity_id", type=str, help="Identity to restore")
    _add_confirmation_args(rollback)

    emergency = subparsers.add_parser("emergency", help="Emergency disable switch")
    emergency_sub = emergency.add_subparsers(dest="emergency_command", required=True)
    emergency_on = emergency_sub.add_parser("on", help="Block every destructive run")
    emergency_on.add_argument("--reason", type=str, required=True, help="Why runs are blocked")
    emergency_sub.add_parser("off", help="Lift the emergency disable")
    emergency_sub.add_parser("status", help="Show whether the emergency disable is active")

    reset = subparsers.add_parser("reset-password", help="Complete a forced password reset")
    reset.add_argument("identity_id", type=str, help="Identity whose password is reset")

    violations = subparsers.add_parser("violations", help="List recorded security violations")
    violations.add_argument(
        "--since",
        type=str,
        help="ISO-8601 timestamp (UTC); only list violations at or after it",
    )

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def prompt_confirmation(request: ConfirmationRequest) -> ConfirmationResponse | None:
    """Interactive provider: ask for a purpose, then for the exact phrase."""

    print(f"\n{request.operation} is a DESTRUCTIVE operation.")
    if request.description:
        print(f"  {request.description}")
    print(f"  Running as: {request.actor}")
    try:
        purpose = input("Purpose of this run: ").strip()
        if not purpose:
            return None
        phrase = input(f'Type "{request.phrase}" to continue: ').strip()
    except EOFError:
        return None
    return ConfirmationResponse(purpose=purpose, phrase=phrase)


def _confirmation_provider(args: argparse.Namespace) -> ConfirmationProvider:
    if args.confirm_phrase is not None:
        return phrase_token(args.confirm_phrase, purpose=args.purpose or "")
    return prompt_confirmation


def _print_report(report: MigrationReport, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.to_dict(), indent=2))
        return
    print(report.summary)
    for result in report.results:
        line = (
            f"  line {result.record.source_line}: {result.record.normalized_email} "
            f"{result.match_type.value} -> {result.intended_action.value} [{result.outcome.value}]"
        )
        if result.errors:
            line += f" ({'; '.join(result.errors)})"
        print(line)
    for row_error in report.row_errors:
        print(f"  rejected line {row_error.line}: {row_error.message}")


def _run(args: argparse.Namespace) -> None:
    if args.command == "classify":
        _print_report(classify_cohort(), as_json=args.json)
    elif args.command == "sample":
        report = run_sample_migration(confirm=_confirmation_provider(args))
        _print_report(report, as_json=args.json)
    elif args.command == "execute":
        report = execute_migration(confirm=_confirmation_provider(args))
        _print_report(report, as_json=args.json)
    elif args.command == "rollback":
        identity = rollback_identity(args.identity_id, confirm=_confirmation_provider(args))
        log.info("Identity %s restored", identity.id)
    elif args.command == "emergency":
        _run_emergency(args)
    elif args.command == "reset-password":
        password = getpass("New password: ")
        if password != getpass("Repeat new password: "):
            raise ValueError("Passwords do not match")
        complete_password_reset(args.identity_id, password)
    elif args.command == "violations":
        since = _parse_iso_datetime(args.since) if args.since else None
        for violation in recent_violations(since=since):
            print(
                f"{violation.occurred_at.isoformat()} {violation.kind.value} "
                f"{violation.operation} actor={violation.actor} prevented={violation.prevented}"
                + (f" {violation.detail}" if violation.detail else "")
            )
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def _run_emergency(args: argparse.Namespace) -> None:
    if args.emergency_command == "on":
        flag = activate_emergency_disable(args.reason)
        print(f"Emergency disable ACTIVE: {flag.reason} (by {flag.disabled_by})")
    elif args.emergency_command == "off":
        cleared = clear_emergency_disable()
        print("Emergency disable cleared" if cleared else "Emergency disable was not active")
    else:
        flag = emergency_status()
        if flag is None:
            print("Emergency disable inactive")
        else:
            print(
                f"Emergency disable ACTIVE since {flag.created_at.isoformat()}: "
                f"{flag.reason} (by {flag.disabled_by})"
            )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        _run(parsed_args)
    except ConfirmationDeclined as exc:
        log.info("Cancelled: %s", exc)
        sys.exit(0)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except (MigrationError, ConfigurationError) as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during migration")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
