"""
stagedwrite Public API

Entry points used by the execution framework: validate the output spec
once per job, open one writer per task attempt, and get one commit
coordinator per job.
"""

import logging
from collections.abc import Mapping

from stagedwrite._internal.schema import parse_schema
from stagedwrite._internal.storage.base import TableStore
from stagedwrite._internal.transactions.coordinator import CommitCoordinator
from stagedwrite.core.config import OutputConfig, validate_output_spec
from stagedwrite.core.identity import resolve_attempt_identity, resolve_job_identity
from stagedwrite.core.locator import attempt_staging_locator, final_locator
from stagedwrite.io.writer import AttemptWriter

logger = logging.getLogger(__name__)


class StagedOutputFormat:
    """
    Staged, exactly-once output into a table store

    Examples:
        >>> import stagedwrite as sw
        >>> output = sw.StagedOutputFormat(sw.open_store("./warehouse"))
        >>> output.validate_output_spec(job_config)
        >>>
        >>> # In each task attempt
        >>> with output.open_writer(task_context) as writer:
        ...     for row in rows:
        ...         writer.write(row)
        >>>
        >>> # At job end
        >>> coordinator = output.get_commit_coordinator(job_config)
        >>> coordinator.commit_job(winning_attempt_ids)
    """

    def __init__(self, store: TableStore):
        self.store = store

    def validate_output_spec(self, job_config: Mapping[str, str]) -> None:
        """
        Check the job's output settings before any task runs

        Raises:
            ConfigError: Missing or malformed settings
            SchemaError: Invalid output schema
        """
        validate_output_spec(job_config)

    def open_writer(self, task_context: Mapping[str, str]) -> AttemptWriter:
        """
        Open the writer of the current task attempt

        Args:
            task_context: Task configuration (job settings plus the
                framework's job and attempt identity keys)

        Raises:
            ConfigError: Missing settings or identities
            SchemaError: Invalid output schema
            StoreUnavailable: Staging table could not be created
        """
        config = OutputConfig.from_mapping(task_context)
        job = resolve_job_identity(task_context)
        attempt = resolve_attempt_identity(task_context, job)
        final = final_locator(config)
        locator = attempt_staging_locator(attempt, final, job)

        logger.debug(f"Opening writer for {attempt.attempt_id}: schema={config.output_schema!r}")
        writer = AttemptWriter(
            self.store,
            locator,
            parse_schema(config.output_schema),
            attempt,
            buffer_size=config.write_buffer_size,
            retry=config.retry,
        )
        return writer.open()

    def get_commit_coordinator(self, job_config: Mapping[str, str]) -> CommitCoordinator:
        """
        Commit coordinator of the job

        Raises:
            ConfigError: Missing settings or job identity
        """
        config = OutputConfig.from_mapping(job_config)
        job = resolve_job_identity(job_config)
        coordinator = CommitCoordinator(self.store, config, job)
        logger.debug(
            f"Returning CommitCoordinator for job {job.job_id}: "
            f"{coordinator.staging_area} -> {coordinator.final}"
        )
        return coordinator


def open_store(warehouse_path: str) -> TableStore:
    """Iceberg table store rooted at a local warehouse directory"""
    from stagedwrite._internal.storage.iceberg_store import IcebergTableStore

    return IcebergTableStore(warehouse_path)
