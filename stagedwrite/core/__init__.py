"""
stagedwrite Core Module

Configuration, identities, naming, exceptions and the public API.
"""

from stagedwrite.core.exceptions import (
    StagedWriteError,
    ConfigError,
    SchemaError,
    StoreUnavailable,
    DatasetNotFoundError,
    WriterClosedError,
    IllegalStateError,
    PartialCommitError,
    JobCommitFatalError,
    CleanupWarning,
)
from stagedwrite.core.config import OutputConfig, RetryPolicy, validate_output_spec
from stagedwrite.core.identity import (
    AttemptIdentity,
    JobIdentity,
    resolve_attempt_identity,
    resolve_job_identity,
)
from stagedwrite.core.locator import (
    TableLocator,
    attempt_staging_locator,
    final_locator,
    staging_area_locator,
)
from stagedwrite.core.api import StagedOutputFormat, open_store

__all__ = [
    # Classes
    "StagedOutputFormat",
    "OutputConfig",
    "RetryPolicy",
    "JobIdentity",
    "AttemptIdentity",
    "TableLocator",
    # Functions
    "open_store",
    "validate_output_spec",
    "resolve_job_identity",
    "resolve_attempt_identity",
    "final_locator",
    "staging_area_locator",
    "attempt_staging_locator",
    # Exceptions
    "StagedWriteError",
    "ConfigError",
    "SchemaError",
    "StoreUnavailable",
    "DatasetNotFoundError",
    "WriterClosedError",
    "IllegalStateError",
    "PartialCommitError",
    "JobCommitFatalError",
    "CleanupWarning",
]
