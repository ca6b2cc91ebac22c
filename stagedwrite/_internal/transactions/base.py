"""
Commit State

Commit records and results of the staged-write two-phase commit.

Commit protocol:
1. WRITE: each task attempt writes into its private staging table
   (status OPEN)
2. PREPARE: the attempt closes its writer cleanly (COMMIT_CANDIDATE)
3. COMMIT: the job merges each winning staging table into the final
   table exactly once (COMMITTED), then reclaims the staging area
4. ABORT: staging tables of failed or superseded attempts are deleted
   (ABORTED)

The status lives in the staging table's properties, so the ledger is
rebuilt from the store after a coordinator restart. A missing staging
table reads as ABORTED.
"""

from dataclasses import dataclass, field
from enum import Enum

from stagedwrite.core.locator import TableLocator

# Staging table properties
STATUS_PROPERTY = "stagedwrite.status"
ATTEMPT_ID_PROPERTY = "stagedwrite.attempt-id"
JOB_ID_PROPERTY = "stagedwrite.job-id"


class CommitStatus(Enum):
    """Lifecycle of one attempt's staged output"""

    OPEN = "open"
    COMMIT_CANDIDATE = "commit_candidate"
    COMMITTED = "committed"
    ABORTED = "aborted"

    @classmethod
    def from_properties(cls, properties: dict[str, str]) -> "CommitStatus":
        """Status recorded on a staging table (OPEN if unset or unknown)"""
        try:
            return cls(properties.get(STATUS_PROPERTY, cls.OPEN.value))
        except ValueError:
            return cls.OPEN


@dataclass(frozen=True)
class CommitRecord:
    """Commit state of one task attempt"""

    attempt_id: str
    locator: TableLocator
    status: CommitStatus


@dataclass
class CleanupResult:
    """Outcome of reclaiming a staging area"""

    dataset: TableLocator
    tables_deleted: list[str] = field(default_factory=list)
    dataset_deleted: bool = False
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class JobCommitResult:
    """Outcome of a job-level commit"""

    job_id: str
    merged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    rows_merged: int = 0
    already_complete: bool = False
    cleanup: CleanupResult | None = None

    @property
    def warnings(self) -> list[tuple[str, str]]:
        return list(self.cleanup.failures) if self.cleanup else []
