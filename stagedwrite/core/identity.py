"""
Identity Resolver

Derives stable job and task-attempt identities from the configuration
handed over by the execution framework.

Job tokens follow the framework grammar ``job_<identifier>_<number>``
(e.g. ``job_201408201023_0001``). Attempt tokens are either framework
attempt ids (``attempt_<identifier>_<number>_<m|r>_<task>_<attempt>``),
from which task slot and ordinal are parsed, or opaque strings.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

from stagedwrite.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

JOB_ID_KEY = "mapreduce.job.id"
JOB_DIR_KEY = "mapreduce.job.dir"
TASK_ATTEMPT_ID_KEY = "mapreduce.task.attempt.id"
TASK_PARTITION_KEY = "mapreduce.task.partition"

JOB_ID_PATTERN = re.compile(r"^job_([A-Za-z0-9]+)_(\d+)$")
ATTEMPT_ID_PATTERN = re.compile(r"^attempt_([A-Za-z0-9]+)_(\d+)_([mr])_(\d+)_(\d+)$")


@dataclass(frozen=True)
class JobIdentity:
    """Identity of one job instance"""

    job_id: str


@dataclass(frozen=True)
class AttemptIdentity:
    """
    Identity of one task attempt

    Retries and speculative copies of a task share ``task_slot`` but each
    has its own ``attempt_id``.
    """

    job_id: str
    attempt_id: str
    attempt_ordinal: int = 0
    task_slot: str | None = None


def resolve_job_identity(job_config: Mapping[str, str]) -> JobIdentity:
    """
    Resolve the job identity

    Uses ``mapreduce.job.id`` when present, otherwise the last path segment
    of ``mapreduce.job.dir``.

    Raises:
        ConfigError: If no token is found or it is not a valid job id
    """
    token = (job_config.get(JOB_ID_KEY) or "").strip()
    if not token:
        job_dir = (job_config.get(JOB_DIR_KEY) or "").strip().rstrip("/")
        token = job_dir.rsplit("/", 1)[-1] if job_dir else ""

    if not token:
        raise ConfigError(f"No job identity found; set {JOB_ID_KEY} or {JOB_DIR_KEY}")
    if not JOB_ID_PATTERN.match(token):
        raise ConfigError(f"Malformed job identity: {token!r}")

    return JobIdentity(job_id=token)


def resolve_attempt_identity(
    task_context: Mapping[str, str],
    job: JobIdentity | None = None,
) -> AttemptIdentity:
    """
    Resolve the identity of the current task attempt

    Args:
        task_context: Task-level configuration
        job: Owning job; when given, framework attempt ids must belong to it

    Raises:
        ConfigError: If the context carries no attempt token, or the token
            names a different job
    """
    token = (task_context.get(TASK_ATTEMPT_ID_KEY) or "").strip()
    if not token:
        raise ConfigError(f"No task attempt identity found; set {TASK_ATTEMPT_ID_KEY}")

    job_id = job.job_id if job is not None else None

    match = ATTEMPT_ID_PATTERN.match(token)
    if match:
        identifier, number, kind, task, ordinal = match.groups()
        owning_job = f"job_{identifier}_{number}"
        if job_id is not None and owning_job != job_id:
            raise ConfigError(f"Task attempt {token} does not belong to job {job_id}")
        return AttemptIdentity(
            job_id=owning_job,
            attempt_id=token,
            attempt_ordinal=int(ordinal),
            task_slot=f"{kind}_{task}",
        )

    if job_id is None:
        job_id = resolve_job_identity(task_context).job_id

    partition = (task_context.get(TASK_PARTITION_KEY) or "").strip()
    logger.debug(f"Opaque attempt id {token!r} (task slot: {partition or 'unknown'})")
    return AttemptIdentity(
        job_id=job_id,
        attempt_id=token,
        task_slot=partition or None,
    )


def task_slot_of(attempt_id: str) -> str | None:
    """Task slot encoded in a framework attempt id, or None for opaque ids"""
    match = ATTEMPT_ID_PATTERN.match(attempt_id)
    if not match:
        return None
    return f"{match.group(3)}_{match.group(4)}"
