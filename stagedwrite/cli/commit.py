"""
Commit / Abort CLI commands

Finish or discard a job's staged output from the command line, e.g.
after the job's coordinator crashed mid-commit.
"""

import argparse
import json
from pathlib import Path

from stagedwrite.core.exceptions import (
    ConfigError,
    IllegalStateError,
    JobCommitFatalError,
    PartialCommitError,
)


def load_job_config(path: str) -> dict[str, str]:
    """Read a job configuration (flat JSON object of string settings)"""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Job configuration not found: {config_path}")
    try:
        data = json.loads(config_path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Job configuration is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Job configuration must be a JSON object")
    return {str(k): str(v) for k, v in data.items() if v is not None}


def _coordinator(args: argparse.Namespace):
    from stagedwrite.core.api import StagedOutputFormat, open_store

    output = StagedOutputFormat(open_store(args.warehouse))
    return output.get_commit_coordinator(load_job_config(args.config))


def run_commit(args: argparse.Namespace) -> int:
    """Run the commit command"""
    try:
        coordinator = _coordinator(args)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    print(f"Committing job {coordinator.job.job_id} -> {coordinator.final}")
    try:
        result = coordinator.commit_job(args.winner)
    except PartialCommitError as e:
        print(f"Partial commit: {e}")
        print("  Re-run the same command to merge the remaining tables.")
        return 1
    except JobCommitFatalError as e:
        print(f"FATAL: {e}")
        print("  Staging area left untouched; check the store and retry.")
        return 3
    except IllegalStateError as e:
        print(f"Error: {e}")
        return 2

    if result.already_complete:
        print("Nothing to do: staging area already reclaimed")
        return 0

    print(f"  Merged: {len(result.merged)} table(s), {result.rows_merged} rows")
    if result.skipped:
        print(f"  Already merged: {', '.join(result.skipped)}")
    for target, error in result.warnings:
        print(f"  [WARN] cleanup of {target}: {error}")
    return 0


def run_abort(args: argparse.Namespace) -> int:
    """Run the abort command"""
    try:
        coordinator = _coordinator(args)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    print(f"Aborting job {coordinator.job.job_id}")
    result = coordinator.abort_job()
    print(f"  Deleted {len(result.tables_deleted)} staging table(s)")
    for target, error in result.failures:
        print(f"  [WARN] cleanup of {target}: {error}")
    return 0
