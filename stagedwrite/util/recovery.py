"""
Recovery Utilities

Operator tooling for jobs that crashed or hit JobCommitFatalError and
left staging areas behind.

Features:
- Find staging areas left under a final dataset
- Report per-attempt commit state from staging table properties
- Reclaim orphaned staging areas
- Verify the final table
"""

import logging
from typing import Any

from stagedwrite._internal.storage.base import TableStore
from stagedwrite._internal.transactions.base import CommitStatus
from stagedwrite._internal.transactions.cleanup import CleanupSupervisor
from stagedwrite.core.config import RetryPolicy
from stagedwrite.core.exceptions import DatasetNotFoundError, StoreUnavailable
from stagedwrite.core.locator import TableLocator, job_id_from_staging_dataset

logger = logging.getLogger(__name__)


class RecoveryTool:
    """
    Recovery utilities for one final dataset

    Examples:
        >>> recovery = RecoveryTool(store, "proj", "ds")
        >>>
        >>> # Diagnose issues
        >>> issues = recovery.diagnose()
        >>> print(issues["staging_areas"])
        [{'dataset': 'ds_hadoop_temporary_job_20140820_0001', 'job_id': ..., 'tables': [...]}]
        >>>
        >>> # Fix issues
        >>> result = recovery.repair()
        >>> print(result)
        {'areas_reclaimed': 1, 'tables_deleted': 3, ...}
    """

    def __init__(
        self,
        store: TableStore,
        project: str,
        dataset: str,
        retry: RetryPolicy | None = None,
    ):
        """Initialize recovery tool"""
        self.store = store
        self.project = project
        self.dataset = dataset
        self.cleanup = CleanupSupervisor(store, retry)

    def find_staging_areas(self) -> dict[str, TableLocator]:
        """Staging areas of the final dataset, keyed by job id"""
        areas = {}
        for name in self.store.list_datasets(self.project):
            job_id = job_id_from_staging_dataset(name, self.dataset)
            if job_id is not None:
                areas[job_id] = TableLocator(self.project, name)
        return areas

    def diagnose(self) -> dict[str, Any]:
        """Diagnose orphaned staging areas"""
        issues: dict[str, Any] = {
            "staging_areas": [],
            "health_status": "healthy",
            "warnings": [],
        }

        try:
            areas = self.find_staging_areas()
        except StoreUnavailable as e:
            issues["health_status"] = "error"
            issues["warnings"].append(f"Could not list datasets of {self.project}: {e}")
            return issues

        for job_id, area in sorted(areas.items()):
            entry: dict[str, Any] = {"dataset": area.dataset, "job_id": job_id, "tables": []}
            try:
                for name in self.store.list_tables(area):
                    table = area.with_table(name)
                    status = CommitStatus.from_properties(self.store.get_properties(table))
                    entry["tables"].append(
                        {"table": name, "status": status.value, "rows": self.store.count_rows(table)}
                    )
            except DatasetNotFoundError:
                continue
            except StoreUnavailable as e:
                issues["warnings"].append(f"Could not read {area}: {e}")
            issues["staging_areas"].append(entry)

        if issues["staging_areas"]:
            issues["warnings"].append(
                f"Found {len(issues['staging_areas'])} staging area(s) under {self.dataset}"
            )
            issues["health_status"] = "warning"

        return issues

    def repair(self, job_id: str | None = None) -> dict[str, Any]:
        """
        Reclaim orphaned staging areas

        Args:
            job_id: Only reclaim this job's staging area (default: all)

        Note:
            Reclaiming a job that has not finished commit_job() discards
            its staged output for good.
        """
        results: dict[str, Any] = {
            "areas_reclaimed": 0,
            "tables_deleted": 0,
            "actions_taken": [],
            "failures": [],
        }

        areas = self.find_staging_areas()
        if job_id is not None:
            areas = {job_id: areas[job_id]} if job_id in areas else {}

        for area_job_id, area in sorted(areas.items()):
            result = self.cleanup.reclaim(area)
            results["tables_deleted"] += len(result.tables_deleted)
            results["actions_taken"].extend(f"Removed: {area.with_table(t)}" for t in result.tables_deleted)
            if result.dataset_deleted:
                results["areas_reclaimed"] += 1
                results["actions_taken"].append(f"Removed: {area}")
            results["failures"].extend(result.failures)
            logger.info(f"Reclaimed staging area of job {area_job_id}")

        return results

    def verify_integrity(self, table: str) -> dict[str, Any]:
        """Verify the final table is readable"""
        results: dict[str, Any] = {
            "status": "healthy",
            "checks": [],
            "errors": [],
        }

        final = TableLocator(self.project, self.dataset, table)
        try:
            if not self.store.table_exists(final):
                results["status"] = "warning"
                results["checks"].append(f"Final table {final} does not exist yet")
                return results
            results["checks"].append(f"Final table {final} exists")

            rows = self.store.count_rows(final)
            results["checks"].append(f"Final table readable ({rows} rows)")

            markers = self.store.merge_markers(final)
            results["checks"].append(f"{len(markers)} merged staging table(s) recorded")
        except StoreUnavailable as e:
            results["status"] = "error"
            results["errors"].append(f"Cannot read final table: {e}")

        return results
