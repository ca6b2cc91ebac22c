"""
Internal Transactions Module

⚠️ PRIVATE API - Do not use directly!

Staged-write two-phase commit:
- Staging tables hold each attempt's output until job commit
- Commit state is kept in staging table properties, so the ledger is
  rebuilt from the store after a restart
- Merge markers are written in the same snapshot as the merged rows
"""

from stagedwrite._internal.transactions.base import (
    CleanupResult,
    CommitRecord,
    CommitStatus,
    JobCommitResult,
)
from stagedwrite._internal.transactions.cleanup import CleanupSupervisor
from stagedwrite._internal.transactions.coordinator import CommitCoordinator

__all__ = [
    "CleanupResult",
    "CleanupSupervisor",
    "CommitCoordinator",
    "CommitRecord",
    "CommitStatus",
    "JobCommitResult",
]
