"""
Recovery CLI command

Diagnose and reclaim orphaned staging areas.
"""

import argparse
from pathlib import Path


def run_recovery(args: argparse.Namespace) -> None:
    """Run the recovery command"""
    warehouse_path = Path(args.warehouse)

    if not warehouse_path.exists():
        print(f"Error: Warehouse not found: {warehouse_path}")
        return

    from stagedwrite.core.api import open_store
    from stagedwrite.util.recovery import RecoveryTool

    tool = RecoveryTool(open_store(str(warehouse_path)), args.project, args.dataset)

    if args.recovery_command == "repair":
        _run_repair(tool, args)
    elif args.recovery_command == "verify":
        _run_verify(tool, args)
    else:
        _run_diagnose(tool)


def _run_diagnose(tool) -> None:
    """Run diagnostics"""
    print("Looking for orphaned staging areas...")
    print()

    issues = tool.diagnose()

    status = issues["health_status"]
    status_symbol = {"healthy": "OK", "warning": "WARNING", "error": "ERROR"}
    print(f"Health Status: {status_symbol.get(status, status)}")
    print()

    for area in issues["staging_areas"]:
        print(f"Staging area {area['dataset']} (job {area['job_id']}):")
        for table in area["tables"]:
            print(f"  - {table['table']}: {table['status']} ({table['rows']} rows)")
        print()

    if issues["warnings"]:
        print("Warnings:")
        for w in issues["warnings"]:
            print(f"  - {w}")
        print()

    if issues["staging_areas"]:
        print("Recommendations:")
        print("  - Resume unfinished commits with 'stagedwrite commit'")
        print("  - Then run 'stagedwrite recovery repair' to reclaim what is left")
        print()


def _run_repair(tool, args: argparse.Namespace) -> None:
    """Run repairs"""
    print("Reclaiming staging areas...")
    print()

    result = tool.repair(job_id=getattr(args, "job_id", None))

    print("Repair Results:")
    print(f"  Staging areas removed: {result['areas_reclaimed']}")
    print(f"  Tables removed: {result['tables_deleted']}")
    print()

    if result["actions_taken"]:
        print("Actions taken:")
        for action in result["actions_taken"][:10]:
            print(f"  - {action}")
        if len(result["actions_taken"]) > 10:
            print(f"  ... and {len(result['actions_taken']) - 10} more")

    if result["failures"]:
        print("Failures:")
        for target, error in result["failures"]:
            print(f"  [FAIL] {target}: {error}")


def _run_verify(tool, args: argparse.Namespace) -> None:
    """Run integrity verification"""
    print("Verifying final table...")
    print()

    result = tool.verify_integrity(args.table)

    status = result["status"]
    status_symbol = {"healthy": "PASS", "warning": "WARN", "error": "FAIL"}
    print(f"Integrity Status: {status_symbol.get(status, status)}")
    print()

    print("Checks performed:")
    for check in result["checks"]:
        print(f"  [PASS] {check}")
    print()

    if result["errors"]:
        print("Errors found:")
        for err in result["errors"]:
            print(f"  [FAIL] {err}")
