"""
Attempt Writer

Buffers rows of one task attempt and flushes them into the attempt's
private staging table.

Features:
- Bounded in-memory buffer, flushed when full or on close
- Background flushes on a single worker thread (batches land in write order)
- Bounded retry of a failed flush with the same batch
- Clean close marks the staging table as a commit candidate
"""

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any

import pyarrow as pa
from pyiceberg.schema import Schema

from stagedwrite._internal.retry import call_with_retry
from stagedwrite._internal.schema import arrow_schema, parse_schema
from stagedwrite._internal.storage.base import TableStore
from stagedwrite._internal.transactions.base import (
    ATTEMPT_ID_PROPERTY,
    JOB_ID_PROPERTY,
    STATUS_PROPERTY,
    CommitStatus,
)
from stagedwrite.core.config import OUTPUT_WRITE_BUFFER_SIZE_DEFAULT, RetryPolicy
from stagedwrite.core.exceptions import (
    ConfigError,
    IllegalStateError,
    SchemaError,
    StoreUnavailable,
    WriterClosedError,
)
from stagedwrite.core.identity import AttemptIdentity
from stagedwrite.core.locator import TableLocator

logger = logging.getLogger(__name__)


class WriterState(Enum):
    CREATED = "created"
    OPEN = "open"
    FLUSHING = "flushing"
    CLOSED = "closed"
    FAILED = "failed"


class AttemptWriter:
    """
    Writes the rows of one task attempt to its staging table

    Examples:
        >>> writer = AttemptWriter(store, locator, schema, attempt, buffer_size=100)
        >>> writer.open()
        >>> writer.write({"word": "hello", "count": 1})
        >>> writer.close()
        <WriterState.CLOSED: 'closed'>
        >>>
        >>> # As a context manager (closes on success, fails on error)
        >>> with AttemptWriter(store, locator, schema, attempt).open() as writer:
        ...     for row in rows:
        ...         writer.write(row)
    """

    def __init__(
        self,
        store: TableStore,
        locator: TableLocator,
        schema: Schema | str,
        attempt: AttemptIdentity,
        buffer_size: int = OUTPUT_WRITE_BUFFER_SIZE_DEFAULT,
        retry: RetryPolicy | None = None,
    ):
        """
        Initialize writer

        Args:
            store: Table store holding the staging table
            locator: The attempt's staging table
            schema: Iceberg schema or schema descriptor
            attempt: Identity of the task attempt
            buffer_size: Rows buffered before a flush is triggered (>= 1)
            retry: Retry policy for store calls
        """
        if buffer_size < 1:
            raise ConfigError(
                f"Output write buffer size should be a positive integer, got {buffer_size}"
            )

        self.store = store
        self.locator = locator
        self.attempt = attempt
        self.buffer_size = buffer_size
        self.retry = retry or RetryPolicy()
        self._schema_source = schema
        self.schema: Schema | None = None
        self._arrow_schema: pa.Schema | None = None

        self.state = WriterState.CREATED
        self._buffer: list[Mapping[str, Any]] = []
        self._executor: ThreadPoolExecutor | None = None
        self._in_flight: list[Future] = []
        self._error: BaseException | None = None
        self._lock = threading.Lock()

        self.rows_written = 0
        self.rows_flushed = 0
        self.flush_count = 0

    def open(self) -> "AttemptWriter":
        """
        Create the staging table (if absent) and start accepting rows

        Raises:
            SchemaError: If the schema is invalid or empty
            StoreUnavailable: If the store stays unreachable after retries
            IllegalStateError: If the writer was already opened
        """
        if self.state != WriterState.CREATED:
            raise IllegalStateError(f"Cannot open writer in state: {self.state.value}")

        schema = self._schema_source
        if not isinstance(schema, Schema):
            schema = parse_schema(schema)
        if not schema.fields:
            raise SchemaError("Output schema has no fields")
        self.schema = schema
        self._arrow_schema = arrow_schema(schema)

        properties = {
            STATUS_PROPERTY: CommitStatus.OPEN.value,
            ATTEMPT_ID_PROPERTY: self.attempt.attempt_id,
            JOB_ID_PROPERTY: self.attempt.job_id,
        }
        call_with_retry(
            self.store.create_dataset,
            self.locator.dataset_locator(),
            policy=self.retry,
            description=f"create {self.locator.dataset_locator()}",
        )
        call_with_retry(
            self.store.create_table,
            self.locator,
            schema,
            properties,
            policy=self.retry,
            description=f"create {self.locator}",
        )

        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"flush-{self.attempt.attempt_id}"
        )
        self.state = WriterState.OPEN
        logger.info(f"Opened writer for {self.attempt.attempt_id} -> {self.locator}")
        return self

    def write(self, row: Mapping[str, Any]) -> None:
        """
        Buffer one row; a full buffer is handed to a background flush

        Raises:
            WriterClosedError: If the writer is not open, or an earlier
                flush failed
        """
        self._check_flushes()
        if self.state not in (WriterState.OPEN, WriterState.FLUSHING):
            raise WriterClosedError(
                f"Cannot write to {self.locator} in state: {self.state.value}"
            ) from self._error

        self._buffer.append(row)
        self.rows_written += 1

        if len(self._buffer) >= self.buffer_size:
            batch = self._buffer
            self._buffer = []
            self.state = WriterState.FLUSHING
            self._in_flight.append(self._executor.submit(self._flush, batch, "size"))

    def close(self) -> WriterState:
        """
        Flush remaining rows and mark the attempt as a commit candidate

        Blocks until every in-flight flush has finished. Calling close()
        on a closed or failed writer returns its state without doing
        anything.

        Returns:
            The terminal state

        Raises:
            StoreUnavailable: If a flush or the final status update failed
                (the writer is then FAILED)
        """
        if self.state in (WriterState.CLOSED, WriterState.FAILED):
            return self.state
        if self.state == WriterState.CREATED:
            raise IllegalStateError("Cannot close a writer that was never opened")

        try:
            self._wait_for_flushes()
            if self._error is not None:
                raise self._error

            if self._buffer:
                batch = self._buffer
                self._buffer = []
                self._flush(batch, "final")

            call_with_retry(
                self.store.set_properties,
                self.locator,
                {STATUS_PROPERTY: CommitStatus.COMMIT_CANDIDATE.value},
                policy=self.retry,
                description=f"mark {self.locator} commit candidate",
            )
        except BaseException as e:
            self.state = WriterState.FAILED
            self._error = self._error or e
            logger.error(f"Writer for {self.attempt.attempt_id} failed on close: {e}")
            raise
        finally:
            self._release()

        self.state = WriterState.CLOSED
        logger.info(
            f"Closed writer for {self.attempt.attempt_id}: {self.rows_flushed} rows "
            f"in {self.flush_count} flush(es)"
        )
        return self.state

    def fail(self) -> WriterState:
        """
        Stop the writer without flushing buffered rows

        Used when the task attempt itself failed or was killed; waits for
        in-flight flushes so the executor is released cleanly.
        """
        if self.state in (WriterState.CLOSED, WriterState.FAILED):
            return self.state
        try:
            self._wait_for_flushes()
        finally:
            self._release()
            dropped = len(self._buffer)
            self._buffer = []
            self.state = WriterState.FAILED
        logger.warning(f"Writer for {self.attempt.attempt_id} failed; {dropped} buffered rows discarded")
        return self.state

    @property
    def buffered_rows(self) -> int:
        return len(self._buffer)

    @property
    def pending_flushes(self) -> list[Future]:
        """Background flushes not yet collected"""
        return list(self._in_flight)

    def _flush(self, batch: list[Mapping[str, Any]], reason: str) -> int:
        """Write one batch, retrying the same batch on transient failure"""
        try:
            rows = pa.Table.from_pylist(batch, schema=self._arrow_schema)
            appended = call_with_retry(
                self.store.append_rows,
                self.locator,
                rows,
                policy=self.retry,
                description=f"flush {len(batch)} rows to {self.locator}",
            )
        except BaseException as e:
            with self._lock:
                self._error = self._error or e
            logger.error(f"Flush ({reason}) of {len(batch)} rows to {self.locator} failed: {e}")
            raise

        with self._lock:
            self.rows_flushed += appended
            self.flush_count += 1
        logger.debug(f"Flushed ({reason}) {appended} rows to {self.locator}")
        return appended

    def _check_flushes(self) -> None:
        """Collect finished background flushes; a failure fails the writer"""
        still_running = []
        for future in self._in_flight:
            if future.done():
                future.exception()
            else:
                still_running.append(future)
        self._in_flight = still_running

        if not self._in_flight and self.state == WriterState.FLUSHING:
            self.state = WriterState.OPEN
        if self._error is not None and self.state in (WriterState.OPEN, WriterState.FLUSHING):
            self.state = WriterState.FAILED
            self._release()

    def _wait_for_flushes(self) -> None:
        for future in self._in_flight:
            future.exception()
        self._in_flight = []

    def _release(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        """Context manager: open writer if needed"""
        if self.state == WriterState.CREATED:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager: close on success, fail on error"""
        if exc_type is None:
            self.close()
        else:
            self.fail()
        return False  # Don't suppress exceptions
