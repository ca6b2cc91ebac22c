"""
stagedwrite CLI Entry Points

Provides command-line interface for:
- info: Show final table and staging state of a job
- commit: Finish (or resume) a job commit
- abort: Discard a job's staged output
- recovery: Diagnose and reclaim orphaned staging areas
"""

import argparse
import logging
import sys


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="stagedwrite - Exactly-once staged output for batch jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stagedwrite info ./warehouse --config job.json             Show job output state
  stagedwrite commit ./warehouse --config job.json -w ATTEMPT Commit winning attempts
  stagedwrite abort ./warehouse --config job.json            Discard staged output
  stagedwrite recovery diagnose ./warehouse -p proj -d ds    Find orphaned staging areas
  stagedwrite recovery repair ./warehouse -p proj -d ds      Reclaim orphaned staging areas
        """,
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Info command
    info_parser = subparsers.add_parser("info", help="Show job output state")
    info_parser.add_argument("warehouse", help="Warehouse path")
    info_parser.add_argument("--config", required=True, help="Job configuration (JSON object)")
    info_parser.add_argument(
        "--snapshots", action="store_true", help="Show snapshot history of the final table"
    )

    # Commit command
    commit_parser = subparsers.add_parser("commit", help="Commit a job's winning attempts")
    commit_parser.add_argument("warehouse", help="Warehouse path")
    commit_parser.add_argument("--config", required=True, help="Job configuration (JSON object)")
    commit_parser.add_argument(
        "--winner", "-w", action="append", default=[], help="Winning attempt id (repeatable)"
    )

    # Abort command
    abort_parser = subparsers.add_parser("abort", help="Discard a job's staged output")
    abort_parser.add_argument("warehouse", help="Warehouse path")
    abort_parser.add_argument("--config", required=True, help="Job configuration (JSON object)")

    # Recovery command
    recovery_parser = subparsers.add_parser("recovery", help="Diagnose and reclaim staging areas")
    recovery_subparsers = recovery_parser.add_subparsers(dest="recovery_command")

    for name, help_text in (
        ("diagnose", "Find orphaned staging areas"),
        ("repair", "Reclaim orphaned staging areas"),
        ("verify", "Verify the final table"),
    ):
        sub = recovery_subparsers.add_parser(name, help=help_text)
        sub.add_argument("warehouse", help="Warehouse path")
        sub.add_argument("--project", "-p", required=True, help="Final project")
        sub.add_argument("--dataset", "-d", required=True, help="Final dataset")
        if name == "repair":
            sub.add_argument("--job-id", help="Only reclaim this job's staging area")
        if name == "verify":
            sub.add_argument("--table", "-t", required=True, help="Final table")

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(message)s" if not args.verbose else "%(levelname)s: %(message)s"
    )

    if args.command == "info":
        from stagedwrite.cli.info import run_info

        run_info(args)
    elif args.command in ("commit", "abort"):
        from stagedwrite.cli.commit import run_abort, run_commit

        code = run_commit(args) if args.command == "commit" else run_abort(args)
        sys.exit(code)
    elif args.command == "recovery":
        from stagedwrite.cli.recovery import run_recovery

        run_recovery(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
