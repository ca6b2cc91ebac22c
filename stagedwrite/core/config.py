"""
Output Configuration

Immutable configuration for one job's staged output, built from the
string-keyed job configuration handed over by the execution framework.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from stagedwrite.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Job configuration keys
OUTPUT_PROJECT_ID_KEY = "stagedwrite.output.project.id"
OUTPUT_DATASET_ID_KEY = "stagedwrite.output.dataset.id"
OUTPUT_TABLE_ID_KEY = "stagedwrite.output.table.id"
OUTPUT_TABLE_SCHEMA_KEY = "stagedwrite.output.table.schema"
OUTPUT_WRITE_BUFFER_SIZE_KEY = "stagedwrite.output.buffer.size"
STORE_MAX_ATTEMPTS_KEY = "stagedwrite.store.max.attempts"
STORE_RETRY_BACKOFF_KEY = "stagedwrite.store.retry.backoff.seconds"

MANDATORY_OUTPUT_KEYS = (
    OUTPUT_PROJECT_ID_KEY,
    OUTPUT_DATASET_ID_KEY,
    OUTPUT_TABLE_ID_KEY,
    OUTPUT_TABLE_SCHEMA_KEY,
)

OUTPUT_WRITE_BUFFER_SIZE_DEFAULT = 100
STORE_MAX_ATTEMPTS_DEFAULT = 3
STORE_RETRY_BACKOFF_DEFAULT = 0.5


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry for transient store failures"""

    max_attempts: int = STORE_MAX_ATTEMPTS_DEFAULT
    backoff_seconds: float = STORE_RETRY_BACKOFF_DEFAULT
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigError(f"{STORE_MAX_ATTEMPTS_KEY} must be >= 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise ConfigError(
                f"{STORE_RETRY_BACKOFF_KEY} must be >= 0, got {self.backoff_seconds}"
            )

    def delay(self, attempt: int) -> float:
        """Seconds to sleep after the given (1-based) failed attempt"""
        return self.backoff_seconds * (self.multiplier ** (attempt - 1))


@dataclass(frozen=True)
class OutputConfig:
    """
    Output settings for one job

    Examples:
        >>> config = OutputConfig.from_mapping({
        ...     "stagedwrite.output.project.id": "proj",
        ...     "stagedwrite.output.dataset.id": "ds",
        ...     "stagedwrite.output.table.id": "tbl",
        ...     "stagedwrite.output.table.schema": '[{"name": "id", "type": "INTEGER"}]',
        ... })
        >>> config.write_buffer_size
        100
    """

    final_project: str
    final_dataset: str
    final_table: str
    output_schema: str
    write_buffer_size: int = OUTPUT_WRITE_BUFFER_SIZE_DEFAULT
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self):
        if self.write_buffer_size < 1:
            raise ConfigError("Output write buffer size should be a positive integer.")

    @classmethod
    def from_mapping(cls, job_config: Mapping[str, str]) -> "OutputConfig":
        """
        Build config from the job configuration

        Raises:
            ConfigError: If a mandatory key is missing/blank or a numeric
                setting is malformed or out of range
        """
        missing = [key for key in MANDATORY_OUTPUT_KEYS if not _get(job_config, key)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        buffer_size = _get_int(job_config, OUTPUT_WRITE_BUFFER_SIZE_KEY, OUTPUT_WRITE_BUFFER_SIZE_DEFAULT)
        retry = RetryPolicy(
            max_attempts=_get_int(job_config, STORE_MAX_ATTEMPTS_KEY, STORE_MAX_ATTEMPTS_DEFAULT),
            backoff_seconds=_get_float(job_config, STORE_RETRY_BACKOFF_KEY, STORE_RETRY_BACKOFF_DEFAULT),
        )

        return cls(
            final_project=_get(job_config, OUTPUT_PROJECT_ID_KEY),
            final_dataset=_get(job_config, OUTPUT_DATASET_ID_KEY),
            final_table=_get(job_config, OUTPUT_TABLE_ID_KEY),
            output_schema=_get(job_config, OUTPUT_TABLE_SCHEMA_KEY),
            write_buffer_size=buffer_size,
            retry=retry,
        )


def validate_output_spec(job_config: Mapping[str, str]) -> OutputConfig:
    """
    Check the output settings once, before any task runs

    Only inspects the configuration; never talks to the store.

    Raises:
        ConfigError: Missing or malformed settings
        SchemaError: Unparseable output schema descriptor
    """
    from stagedwrite._internal.schema import parse_schema

    config = OutputConfig.from_mapping(job_config)
    parse_schema(config.output_schema)
    logger.debug(
        f"Output spec valid for {config.final_project}:{config.final_dataset}.{config.final_table}"
    )
    return config


def _get(job_config: Mapping[str, str], key: str) -> str | None:
    value = job_config.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _get_int(job_config: Mapping[str, str], key: str, default: int) -> int:
    value = _get(job_config, key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None


def _get_float(job_config: Mapping[str, str], key: str, default: float) -> float:
    value = _get(job_config, key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {value!r}") from None
