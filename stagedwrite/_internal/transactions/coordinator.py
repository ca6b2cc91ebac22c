"""
Commit Coordinator

Two-phase commit of staged task output into the final table.

Per-task commit only acknowledges that an attempt's staging table is
complete; the data is already durable there. The job commit lists the
staging area (the authoritative ledger), merges each winning staging
table into the final table exactly once, then reclaims the staging area.
"""

import logging

from stagedwrite._internal.retry import call_with_retry
from stagedwrite._internal.storage.base import TableStore
from stagedwrite._internal.transactions.base import (
    STATUS_PROPERTY,
    CleanupResult,
    CommitRecord,
    CommitStatus,
    JobCommitResult,
)
from stagedwrite._internal.transactions.cleanup import CleanupSupervisor
from stagedwrite.core.config import OutputConfig
from stagedwrite.core.exceptions import (
    DatasetNotFoundError,
    IllegalStateError,
    JobCommitFatalError,
    PartialCommitError,
    StoreUnavailable,
)
from stagedwrite.core.identity import AttemptIdentity, JobIdentity, task_slot_of
from stagedwrite.core.locator import (
    TableLocator,
    attempt_id_from_staging_table,
    attempt_staging_locator,
    final_locator,
    staging_area_locator,
)

logger = logging.getLogger(__name__)


class CommitCoordinator:
    """
    Commits or aborts the staged output of one job

    commit_job() and abort_job() must not run concurrently for the same
    job; the caller serialises them.

    Examples:
        >>> coordinator = CommitCoordinator(store, config, JobIdentity("job_20140820_0001"))
        >>> coordinator.commit_task("attempt-1")
        >>> coordinator.abort_task("attempt-2")
        >>> result = coordinator.commit_job(["attempt-1"])
        >>> result.merged
        ['tbl_attempt-1']
        >>>
        >>> # On error:
        >>> try:
        ...     coordinator.commit_job(["attempt-1", "attempt-3"])
        ... except PartialCommitError:
        ...     coordinator.commit_job(["attempt-1", "attempt-3"])  # merges the rest only
    """

    def __init__(self, store: TableStore, config: OutputConfig, job: JobIdentity):
        self.store = store
        self.config = config
        self.job = job
        self.final = final_locator(config)
        self.staging_area = staging_area_locator(job, self.final)
        self.cleanup = CleanupSupervisor(store, config.retry)

    def staging_locator(self, attempt_id: str) -> TableLocator:
        """Staging table of an attempt"""
        attempt = AttemptIdentity(job_id=self.job.job_id, attempt_id=attempt_id)
        return attempt_staging_locator(attempt, self.final, self.job)

    def _retry(self, fn, *args, description: str):
        return call_with_retry(fn, *args, policy=self.config.retry, description=description)

    # Ledger

    def get_commit_record(self, attempt_id: str) -> CommitRecord:
        """
        Current commit state of an attempt, read from the store

        A missing staging table reads as ABORTED.
        """
        locator = self.staging_locator(attempt_id)
        if not self._retry(self.store.table_exists, locator, description=f"load {locator}"):
            return CommitRecord(attempt_id, locator, CommitStatus.ABORTED)
        properties = self._retry(self.store.get_properties, locator, description=f"load {locator}")
        return CommitRecord(attempt_id, locator, CommitStatus.from_properties(properties))

    def list_commit_records(self) -> list[CommitRecord]:
        """Commit records of every attempt present in the staging area"""
        try:
            tables = self._retry(
                self.store.list_tables, self.staging_area, description=f"list {self.staging_area}"
            )
        except DatasetNotFoundError:
            return []

        records = []
        for name in tables:
            attempt_id = attempt_id_from_staging_table(name, self.final)
            if attempt_id is None:
                continue
            records.append(self.get_commit_record(attempt_id))
        return records

    # Task-level

    def commit_task(self, attempt_id: str) -> CommitRecord:
        """
        Acknowledge a cleanly closed attempt

        No data moves here; merging happens once, in commit_job().

        Raises:
            IllegalStateError: If the attempt is not a commit candidate
        """
        record = self.get_commit_record(attempt_id)
        if record.status != CommitStatus.COMMIT_CANDIDATE:
            raise IllegalStateError(
                f"Cannot commit task attempt {attempt_id} in state {record.status.value}"
            )
        logger.info(f"Task attempt {attempt_id} accepted for commit ({record.locator})")
        return record

    def abort_task(self, attempt_id: str) -> CommitRecord:
        """
        Discard an attempt's staged output

        Deleting a staging table that does not exist is not an error.
        """
        locator = self.staging_locator(attempt_id)
        deleted = self._retry(self.store.delete_table, locator, description=f"delete {locator}")
        if deleted:
            logger.info(f"Aborted task attempt {attempt_id}, deleted {locator}")
        else:
            logger.debug(f"Aborted task attempt {attempt_id}, no staging table to delete")
        return CommitRecord(attempt_id, locator, CommitStatus.ABORTED)

    # Job-level

    def commit_job(self, winning_attempt_ids: list[str]) -> JobCommitResult:
        """
        Merge the winning attempts into the final table, then reclaim

        Safe to call again after PartialCommitError or a crash: winners
        already merged are detected and skipped.

        Args:
            winning_attempt_ids: The one successful attempt per task slot,
                as decided by the execution framework

        Returns:
            JobCommitResult (cleanup failures are reported in ``cleanup``)

        Raises:
            JobCommitFatalError: If the staging area cannot be enumerated
            IllegalStateError: If two winners share a task slot or a
                winner was never closed cleanly
            PartialCommitError: If some winners could not be merged
        """
        result = JobCommitResult(job_id=self.job.job_id)

        try:
            tables = self._retry(
                self.store.list_tables, self.staging_area, description=f"list {self.staging_area}"
            )
        except DatasetNotFoundError:
            logger.info(f"Staging area {self.staging_area} absent; job {self.job.job_id} already committed")
            result.already_complete = True
            return result
        except StoreUnavailable as e:
            raise JobCommitFatalError(
                f"Cannot enumerate staging area {self.staging_area} for job {self.job.job_id}: {e}"
            ) from e

        winners = self._select_winners(tables, winning_attempt_ids)
        logger.info(
            f"Committing job {self.job.job_id}: {len(winners)} winner(s) "
            f"of {len(tables)} staging table(s) -> {self.final}"
        )

        pending = []
        failed = []
        for attempt_id, locator in winners:
            try:
                properties = self._retry(
                    self.store.get_properties, locator, description=f"load {locator}"
                )
            except StoreUnavailable as e:
                logger.error(f"Cannot read commit state of {locator}: {e}")
                failed.append(locator.table)
                continue

            status = CommitStatus.from_properties(properties)
            if status == CommitStatus.COMMITTED:
                result.skipped.append(locator.table)
            elif status == CommitStatus.COMMIT_CANDIDATE:
                pending.append(locator)
            else:
                raise IllegalStateError(
                    f"Winning attempt {attempt_id} is {status.value}, not a commit candidate"
                )

        if pending:
            try:
                self._prepare_final_table(pending[0])
            except StoreUnavailable as e:
                raise PartialCommitError(
                    f"Could not prepare final table {self.final}: {e}",
                    merged=list(result.skipped),
                    failed=failed + [locator.table for locator in pending],
                ) from e

            for locator in pending:
                try:
                    rows = self._retry(
                        self._merge_once, locator, description=f"merge {locator}"
                    )
                    if rows is None:
                        result.skipped.append(locator.table)
                    else:
                        result.rows_merged += rows
                        result.merged.append(locator.table)
                    self._retry(
                        self.store.set_properties, locator,
                        {STATUS_PROPERTY: CommitStatus.COMMITTED.value},
                        description=f"mark {locator} committed",
                    )
                except StoreUnavailable as e:
                    logger.error(f"Failed to merge {locator} into {self.final}: {e}")
                    failed.append(locator.table)

        if failed:
            raise PartialCommitError(
                f"Job {self.job.job_id}: merged {len(result.merged)}, failed {len(failed)}: "
                f"{', '.join(failed)}",
                merged=result.merged + result.skipped,
                failed=failed,
            )

        logger.info(
            f"Job {self.job.job_id} merged {len(result.merged)} table(s), "
            f"{result.rows_merged} rows into {self.final}"
        )
        result.cleanup = self.cleanup.reclaim(self.staging_area)
        return result

    def abort_job(self) -> CleanupResult:
        """Discard all staged output of the job; never merges anything"""
        logger.info(f"Aborting job {self.job.job_id}, reclaiming {self.staging_area}")
        return self.cleanup.reclaim(self.staging_area)

    def _select_winners(
        self, tables: list[str], winning_attempt_ids: list[str]
    ) -> list[tuple[str, TableLocator]]:
        present = {}
        for name in tables:
            attempt_id = attempt_id_from_staging_table(name, self.final)
            if attempt_id is None:
                logger.warning(f"Ignoring unrecognised table {name} in {self.staging_area}")
                continue
            present[attempt_id] = self.staging_area.with_table(name)

        winners = []
        slots: dict[str, str] = {}
        for attempt_id in dict.fromkeys(winning_attempt_ids):
            slot = task_slot_of(attempt_id)
            if slot is not None:
                if slot in slots:
                    raise IllegalStateError(
                        f"Attempts {slots[slot]} and {attempt_id} both won task slot {slot}"
                    )
                slots[slot] = attempt_id

            locator = present.get(attempt_id)
            if locator is None:
                logger.warning(f"Winning attempt {attempt_id} has no staging table; skipping")
                continue
            winners.append((attempt_id, locator))
        return winners

    def _prepare_final_table(self, template: TableLocator) -> None:
        """Create the final table from a winner's schema if it does not exist"""
        if self._retry(self.store.table_exists, self.final, description=f"load {self.final}"):
            return

        schema = self._retry(self.store.table_schema, template, description=f"load {template}")
        self._retry(self.store.create_dataset, self.final.dataset_locator(), description="create dataset")
        self._retry(self.store.create_table, self.final, schema, description=f"create {self.final}")

    def _merge_once(self, locator: TableLocator) -> int | None:
        """
        Copy one staging table into the final table unless already there

        The marker lands in the same snapshot as the copied rows, so a
        merge interrupted after the append is never repeated.

        Returns:
            Rows copied, or None if the table had been merged before
        """
        marker = self.merge_marker(locator)
        if marker in self.store.merge_markers(self.final):
            logger.info(f"{locator} already merged into {self.final}")
            return None
        return self.store.copy_table(locator, self.final, marker)

    def merge_marker(self, locator: TableLocator) -> str:
        return f"{self.job.job_id}/{locator.table}"
