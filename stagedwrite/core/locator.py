"""
Staging Locator

Deterministic naming for the final destination, the per-job staging area
and the per-attempt staging tables. Every name is a pure function of the
job/attempt identities and the final locator, so a restarted coordinator
can rebuild the set of staging tables from a listing alone.
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace

from stagedwrite.core.config import (
    OUTPUT_DATASET_ID_KEY,
    OUTPUT_PROJECT_ID_KEY,
    OUTPUT_TABLE_ID_KEY,
    OutputConfig,
)
from stagedwrite.core.exceptions import ConfigError
from stagedwrite.core.identity import AttemptIdentity, JobIdentity

# Suffix added to the final dataset, followed by the job id, to name the
# job's staging area.
TEMP_DATASET_SUFFIX = "_hadoop_temporary_"


@dataclass(frozen=True)
class TableLocator:
    """
    Fully-qualified table (or dataset, when ``table`` is empty)

    Examples:
        >>> TableLocator("proj", "ds", "tbl")
        TableLocator(project='proj', dataset='ds', table='tbl')
        >>> str(TableLocator("proj", "ds", "tbl"))
        'proj:ds.tbl'
    """

    project: str
    dataset: str
    table: str = ""

    def __str__(self) -> str:
        if self.table:
            return f"{self.project}:{self.dataset}.{self.table}"
        return f"{self.project}:{self.dataset}"

    def dataset_locator(self) -> "TableLocator":
        """Locator of the dataset containing this table"""
        return replace(self, table="")

    def with_table(self, table: str) -> "TableLocator":
        return replace(self, table=table)


def final_locator(config: OutputConfig | Mapping[str, str]) -> TableLocator:
    """
    Final destination table

    Raises:
        ConfigError: If project, dataset or table is missing or empty
    """
    if isinstance(config, OutputConfig):
        parts = (config.final_project, config.final_dataset, config.final_table)
    else:
        keys = (OUTPUT_PROJECT_ID_KEY, OUTPUT_DATASET_ID_KEY, OUTPUT_TABLE_ID_KEY)
        parts = tuple((config.get(key) or "").strip() for key in keys)
        missing = [key for key, value in zip(keys, parts) if not value]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    if not all(parts):
        raise ConfigError(f"Incomplete final table locator: {parts}")
    return TableLocator(*parts)


def staging_area_locator(job: JobIdentity, final: TableLocator) -> TableLocator:
    """Staging dataset of the job, e.g. ``ds_hadoop_temporary_job_20140820_0001``"""
    return TableLocator(final.project, f"{final.dataset}{TEMP_DATASET_SUFFIX}{job.job_id}")


def attempt_staging_locator(
    attempt: AttemptIdentity,
    final: TableLocator,
    job: JobIdentity,
) -> TableLocator:
    """Private staging table of one attempt: ``<final table>_<attempt id>``"""
    return staging_area_locator(job, final).with_table(f"{final.table}_{attempt.attempt_id}")


def attempt_id_from_staging_table(table_name: str, final: TableLocator) -> str | None:
    """Inverse of attempt_staging_locator() for a listed table name"""
    prefix = f"{final.table}_"
    if not table_name.startswith(prefix) or len(table_name) == len(prefix):
        return None
    return table_name[len(prefix):]


def job_id_from_staging_dataset(dataset: str, final_dataset: str) -> str | None:
    """Job id encoded in a staging dataset name, or None if it is not one"""
    prefix = f"{final_dataset}{TEMP_DATASET_SUFFIX}"
    if not dataset.startswith(prefix) or len(dataset) == len(prefix):
        return None
    return dataset[len(prefix):]
