"""
Cleanup Supervisor

Idempotent teardown of a job's staging area.
"""

import logging
import warnings

from stagedwrite._internal.retry import call_with_retry
from stagedwrite._internal.storage.base import TableStore
from stagedwrite._internal.transactions.base import CleanupResult
from stagedwrite.core.config import RetryPolicy
from stagedwrite.core.exceptions import CleanupWarning, DatasetNotFoundError, StoreUnavailable
from stagedwrite.core.locator import TableLocator

logger = logging.getLogger(__name__)


class CleanupSupervisor:
    """
    Reclaims staging areas

    Deleting an already-absent table or dataset is not an error, so
    reclaim() may run any number of times. Failures never raise: they are
    logged, collected in the result and emitted once as a CleanupWarning.

    Examples:
        >>> supervisor = CleanupSupervisor(store)
        >>> result = supervisor.reclaim(TableLocator("proj", "ds_hadoop_temporary_job_1_0001"))
        >>> result.dataset_deleted
        True
    """

    def __init__(self, store: TableStore, retry: RetryPolicy | None = None):
        self.store = store
        self.retry = retry or RetryPolicy()

    def reclaim(self, staging_area: TableLocator) -> CleanupResult:
        """
        Delete every table in the staging area, then the area itself

        Returns:
            CleanupResult listing deleted tables and any failures
        """
        area = staging_area.dataset_locator()
        result = CleanupResult(dataset=area)

        try:
            tables = call_with_retry(
                self.store.list_tables, area, policy=self.retry, description=f"list {area}"
            )
        except DatasetNotFoundError:
            logger.debug(f"Staging area already absent: {area}")
            return result
        except StoreUnavailable as e:
            logger.warning(f"Could not list staging area {area}: {e}")
            result.failures.append((str(area), str(e)))
            self._warn(result)
            return result

        for name in tables:
            table = area.with_table(name)
            try:
                if call_with_retry(
                    self.store.delete_table, table, policy=self.retry, description=f"delete {table}"
                ):
                    result.tables_deleted.append(name)
            except StoreUnavailable as e:
                logger.warning(f"Failed to delete staging table {table}: {e}")
                result.failures.append((str(table), str(e)))

        if result.failures:
            # A non-empty dataset cannot be dropped
            logger.warning(f"Leaving staging area {area} in place: {len(result.failures)} table(s) remain")
        else:
            try:
                result.dataset_deleted = call_with_retry(
                    self.store.delete_dataset, area, policy=self.retry, description=f"delete {area}"
                )
            except StoreUnavailable as e:
                logger.warning(f"Failed to delete staging area {area}: {e}")
                result.failures.append((str(area), str(e)))

        if result.failures:
            self._warn(result)
        else:
            logger.info(f"Reclaimed staging area {area} ({len(result.tables_deleted)} tables)")
        return result

    def _warn(self, result: CleanupResult) -> None:
        warnings.warn(
            CleanupWarning(
                f"Incomplete cleanup of {result.dataset}: {len(result.failures)} failure(s)",
                failures=result.failures,
            ),
            stacklevel=3,
        )
