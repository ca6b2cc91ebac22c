"""
stagedwrite Exceptions

Exception hierarchy for error handling.
"""


class StagedWriteError(Exception):
    """Base exception for stagedwrite"""

    pass


class ConfigError(StagedWriteError):
    """Job configuration is missing or malformed"""

    pass


class SchemaError(StagedWriteError):
    """Output schema descriptor is invalid"""

    pass


class StoreUnavailable(StagedWriteError):
    """Transient failure talking to the table store"""

    pass


class DatasetNotFoundError(StagedWriteError):
    """Dataset (namespace) does not exist in the store"""

    pass


class WriterClosedError(StagedWriteError):
    """Write attempted on a closed or failed writer"""

    pass


class IllegalStateError(StagedWriteError):
    """Operation is not valid for the current commit state"""

    pass


class PartialCommitError(StagedWriteError):
    """
    Job commit merged some winners but not all

    Re-invoking commit_job() only retries the unmerged remainder.
    """

    def __init__(self, message: str, merged: list[str] | None = None, failed: list[str] | None = None):
        super().__init__(message)
        self.merged = list(merged or [])
        self.failed = list(failed or [])


class JobCommitFatalError(StagedWriteError):
    """Staging area could not be enumerated; operator intervention required"""

    pass


class CleanupWarning(UserWarning):
    """Best-effort teardown of a staging area left something behind"""

    def __init__(self, message: str, failures: list[tuple[str, str]] | None = None):
        super().__init__(message)
        self.failures = list(failures or [])
