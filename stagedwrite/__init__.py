"""
stagedwrite - Exactly-once output from parallel batch jobs into tables

Each task attempt writes into a private staging table; the job commit
merges the winning attempts into the final table once and drops the rest.

Quick Start:
    >>> import stagedwrite as sw
    >>>
    >>> output = sw.StagedOutputFormat(sw.open_store("./warehouse"))
    >>> output.validate_output_spec(job_config)
    >>>
    >>> # Task attempt
    >>> writer = output.open_writer(task_context)
    >>> writer.write({"word": "hello", "count": 1})
    >>> writer.close()
    >>>
    >>> # Job end
    >>> coordinator = output.get_commit_coordinator(job_config)
    >>> coordinator.commit_task("attempt_201408201023_0001_r_000000_0")
    >>> coordinator.commit_job(["attempt_201408201023_0001_r_000000_0"])
"""

from stagedwrite.core import (
    AttemptIdentity,
    CleanupWarning,
    ConfigError,
    DatasetNotFoundError,
    IllegalStateError,
    JobCommitFatalError,
    JobIdentity,
    OutputConfig,
    PartialCommitError,
    RetryPolicy,
    SchemaError,
    StagedOutputFormat,
    StagedWriteError,
    StoreUnavailable,
    TableLocator,
    WriterClosedError,
    attempt_staging_locator,
    final_locator,
    open_store,
    resolve_attempt_identity,
    resolve_job_identity,
    staging_area_locator,
    validate_output_spec,
)
from stagedwrite._internal.transactions import (
    CleanupResult,
    CleanupSupervisor,
    CommitCoordinator,
    CommitRecord,
    CommitStatus,
    JobCommitResult,
)
from stagedwrite.io import AttemptWriter, WriterState

__version__ = "0.1.0"

__all__ = [
    "AttemptIdentity",
    "AttemptWriter",
    "CleanupResult",
    "CleanupSupervisor",
    "CleanupWarning",
    "CommitCoordinator",
    "CommitRecord",
    "CommitStatus",
    "ConfigError",
    "DatasetNotFoundError",
    "IllegalStateError",
    "JobCommitFatalError",
    "JobCommitResult",
    "JobIdentity",
    "OutputConfig",
    "PartialCommitError",
    "RetryPolicy",
    "SchemaError",
    "StagedOutputFormat",
    "StagedWriteError",
    "StoreUnavailable",
    "TableLocator",
    "WriterClosedError",
    "WriterState",
    "__version__",
    "attempt_staging_locator",
    "final_locator",
    "open_store",
    "resolve_attempt_identity",
    "resolve_job_identity",
    "staging_area_locator",
    "validate_output_spec",
]


# Lazy imports for operator tooling
def __getattr__(name):
    if name == "RecoveryTool":
        from stagedwrite.util.recovery import RecoveryTool

        return RecoveryTool
    elif name == "IcebergTableStore":
        from stagedwrite._internal.storage.iceberg_store import IcebergTableStore

        return IcebergTableStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
