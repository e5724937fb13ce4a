"""Command line interface for the identity migration toolkit."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .extractors.source_api import SourceAPIError, export_snapshot
from .models.migration import JobResult, MigrationConfig
from .models.record import RecordKind
from .orchestrator import MigrationAbortedError, MigrationOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idmigrate",
        description="Migrate users, organizations and memberships from a snapshot export to WorkOS"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--api-key", help="WorkOS secret key (default: $WORKOS_SECRET_KEY)")
    common.add_argument("--api-url", help="WorkOS API base URL (default: $WORKOS_API_URL)")
    common.add_argument("--concurrency", type=int, help="Max concurrent requests (default: 10)")
    common.add_argument("--retry-after", type=float,
                        help="Backoff in seconds when a rate limit gives no Retry-After (default: 10)")
    common.add_argument("--no-report", action="store_true", help="Do not write a migration report")
    common.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    users_parser = subparsers.add_parser("users", parents=[common], help="Migrate users")
    users_parser.add_argument("--input", required=True, help="Path to the exported users (NDJSON)")
    users_parser.add_argument("--output", required=True, help="Where to write the user translation artifact")

    orgs_parser = subparsers.add_parser("organizations", parents=[common], help="Migrate organizations")
    orgs_parser.add_argument("--input", required=True, help="Path to the exported organizations (NDJSON)")
    orgs_parser.add_argument("--output", required=True,
                             help="Where to write the organization translation artifact")

    members_parser = subparsers.add_parser("memberships", parents=[common],
                                           help="Migrate organization memberships")
    members_parser.add_argument("--input", required=True, help="Path to the exported memberships (NDJSON)")
    members_parser.add_argument("--users-map", required=True,
                                help="User translation artifact written by the users command")
    members_parser.add_argument("--organizations-map", required=True,
                                help="Organization translation artifact written by the organizations command")
    members_parser.add_argument("--output", required=True,
                                help="Where to write the membership translation artifact")

    source = argparse.ArgumentParser(add_help=False)
    source.add_argument("--source-key", help="Clerk secret key (default: $CLERK_SECRET_KEY)")
    source.add_argument("--source-url", help="Clerk API base URL (default: $CLERK_API_URL)")

    export_parser = subparsers.add_parser("export", parents=[common, source],
                                          help="Export a snapshot from the Clerk API")
    export_parser.add_argument("--output-dir", help="Directory for the NDJSON snapshot files")

    run_parser = subparsers.add_parser("run", parents=[common, source], help="Run the full migration cycle")
    run_parser.add_argument("--export", action="store_true",
                            help="Export the snapshot from the Clerk API first")
    run_parser.add_argument("--users", help="Path to the exported users (NDJSON)")
    run_parser.add_argument("--organizations", help="Path to the exported organizations (NDJSON)")
    run_parser.add_argument("--memberships", help="Path to the exported memberships (NDJSON)")
    run_parser.add_argument("--output-dir", help="Directory for translation artifacts and reports")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.command:
        parser.print_help()
        return 1

    exporting = args.command == "export" or getattr(args, "export", False)
    if args.command == "run" and not (exporting or args.users or args.organizations or args.memberships):
        parser.error("nothing to migrate: pass --export, --users, --organizations or --memberships")

    try:
        config = MigrationConfig.from_env(
            api_key=args.api_key,
            api_base_url=args.api_url,
            max_concurrency=args.concurrency,
            default_retry_after=args.retry_after,
            source_api_key=getattr(args, "source_key", None),
            source_api_url=getattr(args, "source_url", None),
            output_dir=getattr(args, "output_dir", None),
        )
        if args.no_report:
            config.save_report = False
        if exporting and not config.source_api_key:
            raise ValueError("Exporting needs a Clerk secret key (--source-key or $CLERK_SECRET_KEY)")
        if args.command == "export":
            return run_export(config, args)
        orchestrator = MigrationOrchestrator(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        results = asyncio.run(run_command(orchestrator, args))
    except SourceAPIError as e:
        print(f"Error: snapshot export failed: {e}", file=sys.stderr)
        return 1
    except MigrationAbortedError as e:
        print_summary(orchestrator.results)
        print(f"\nMigration aborted: {e.cause}", file=sys.stderr)
        return 1
    finally:
        orchestrator.close()

    print_summary(results)
    return 0


async def run_command(orchestrator: MigrationOrchestrator, args) -> List[JobResult]:
    """Run the job(s) selected on the command line."""
    if args.command == "run":
        inputs = {
            RecordKind.USER: args.users,
            RecordKind.ORGANIZATION: args.organizations,
            RecordKind.MEMBERSHIP: args.memberships,
        }
        if args.export:
            snapshot = await asyncio.to_thread(export_snapshot, orchestrator.config, args.output_dir)
            inputs = {kind: inputs[kind] or path for kind, path in snapshot.items()}

        return await orchestrator.run_migration(
            users_path=inputs[RecordKind.USER],
            organizations_path=inputs[RecordKind.ORGANIZATION],
            memberships_path=inputs[RecordKind.MEMBERSHIP],
            output_dir=args.output_dir,
        )

    kind = {
        "users": RecordKind.USER,
        "organizations": RecordKind.ORGANIZATION,
        "memberships": RecordKind.MEMBERSHIP,
    }[args.command]

    dependencies = {}
    if kind == RecordKind.MEMBERSHIP:
        dependencies = {
            RecordKind.USER: args.users_map,
            RecordKind.ORGANIZATION: args.organizations_map,
        }

    try:
        result = await orchestrator.run_job(kind, args.input, args.output, dependencies)
    finally:
        if orchestrator.config.save_report:
            orchestrator.save_report(Path(args.output).parent)
    return [result]


def run_export(config: MigrationConfig, args) -> int:
    """Write a snapshot of the source platform without migrating it."""
    try:
        paths = export_snapshot(config, args.output_dir)
    except SourceAPIError as e:
        print(f"Error: snapshot export failed: {e}", file=sys.stderr)
        return 1

    for kind, path in paths.items():
        print(f"{kind.label.capitalize()} snapshot: {path}")
    return 0


def print_summary(results: List[JobResult]) -> None:
    print("\n" + "=" * 60)
    print("MIGRATION SUMMARY")
    print("=" * 60)
    for result in results:
        print(f"{result.kind.label.capitalize()}: {result.status.value}")
        print(f"  {result.summary}")
        print(f"  Skipped: {result.records_skipped}  Failed: {result.records_failed}"
              f"  Rate-limit pauses: {result.rate_limit_pauses}")
        if result.duration_seconds is not None:
            print(f"  Duration: {result.duration_seconds:.2f} seconds")


if __name__ == "__main__":
    sys.exit(main())
