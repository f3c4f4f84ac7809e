"""CLI entry point: parses arguments, resolves settings, dispatches commands."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from awsso.errors import AwssoError
from awsso.reporting.reporter import ConsoleReporter, QuietReporter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="awsso",
        description="AWS SSO helper: refresh short-term credentials from a cached SSO session",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to an awsso settings.yaml (default: built-in settings)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only print errors",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    creds = subparsers.add_parser("creds", help="Refresh short-term credentials")
    creds.add_argument("profiles", nargs="+", metavar="PROFILE", help="Profiles to refresh")
    creds.add_argument(
        "--dry-run", "--dryRun",
        dest="dry_run",
        action="store_true",
        help="Write the resulting credentials file to stdout instead of disk",
    )
    creds.add_argument(
        "--backup",
        action="store_true",
        help="Make a backup before writing to the credentials file",
    )
    creds.add_argument(
        "--login",
        action="store_true",
        help="Run 'aws sso login' for each profile before fetching credentials",
    )

    profiles = subparsers.add_parser("profiles", help="List available SSO profiles")
    profiles.add_argument(
        "--plain",
        action="store_true",
        help="Print profile names only, without the account id column",
    )
    profiles.add_argument(
        "--wide",
        action="store_true",
        help="Also show role name and region",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(0)

    from awsso.cli.commands import run_creds, run_profiles
    from awsso.refresh.orchestrator import RefreshOptions
    from awsso.settings import load_settings

    reporter = QuietReporter() if args.quiet else ConsoleReporter()

    try:
        settings = load_settings(args.config)
    except AwssoError as exc:
        ConsoleReporter().error(str(exc))
        sys.exit(1)

    try:
        if args.command == "creds":
            status = run_creds(
                settings,
                reporter,
                args.profiles,
                RefreshOptions(dry_run=args.dry_run, backup=args.backup, login=args.login),
            )
        else:
            status = run_profiles(settings, reporter, columns=not args.plain, wide=args.wide)
    except KeyboardInterrupt:
        sys.exit(130)

    sys.exit(status)


if __name__ == "__main__":
    main()
