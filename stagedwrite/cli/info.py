"""
Info CLI command

Shows the final table and the staging state of one job.
"""

import argparse
from datetime import UTC, datetime
from pathlib import Path

from stagedwrite.cli.commit import load_job_config
from stagedwrite.core.exceptions import ConfigError


def run_info(args: argparse.Namespace) -> None:
    """Run the info command"""
    warehouse_path = Path(args.warehouse)

    if not warehouse_path.exists():
        print(f"Error: Warehouse not found: {warehouse_path}")
        return

    from stagedwrite.core.api import StagedOutputFormat, open_store

    store = open_store(str(warehouse_path))
    try:
        coordinator = StagedOutputFormat(store).get_commit_coordinator(load_job_config(args.config))
    except ConfigError as e:
        print(f"Error: {e}")
        return

    print(f"Warehouse: {warehouse_path.resolve()}")
    print(f"Job: {coordinator.job.job_id}")
    print()

    final = coordinator.final
    print(f"Final Table: {final}")
    if store.table_exists(final):
        print(f"  Rows: {store.count_rows(final):,}")
        print(f"  Merged staging tables: {len(store.merge_markers(final))}")
        if args.snapshots and hasattr(store, "get_snapshot_history"):
            _show_snapshots(store.get_snapshot_history(final))
    else:
        print("  (not created yet)")
    print()

    print(f"Staging Area: {coordinator.staging_area}")
    records = coordinator.list_commit_records()
    if not records:
        print("  (empty or reclaimed)")
    for record in records:
        print(f"  {record.attempt_id}: {record.status.value}")


def _show_snapshots(snapshots: list[dict]) -> None:
    """Print snapshot history"""
    print(f"  Snapshots: {len(snapshots)}")
    for snap in snapshots[:10]:
        ts = datetime.fromtimestamp(snap["timestamp_ms"] / 1000, tz=UTC)
        marker = f" <- {snap['marker']}" if snap["marker"] else ""
        print(f"    {snap['snapshot_id']}  {ts.strftime('%Y-%m-%d %H:%M:%S')}  {snap['operation']}{marker}")
    if len(snapshots) > 10:
        print(f"    ... and {len(snapshots) - 10} more")
