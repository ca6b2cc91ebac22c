"""
stagedwrite Test Configuration

Shared pytest fixtures for all tests.
"""

import json
import shutil
import tempfile

import pytest

from stagedwrite._internal.storage.iceberg_store import IcebergTableStore
from stagedwrite.core.exceptions import StoreUnavailable

WORD_COUNT_SCHEMA = json.dumps(
    [
        {"name": "word", "type": "STRING", "mode": "REQUIRED"},
        {"name": "count", "type": "INTEGER"},
    ]
)


class FlakyStore(IcebergTableStore):
    """IcebergTableStore that raises StoreUnavailable on demand"""

    def __init__(self, warehouse_path: str):
        super().__init__(warehouse_path)
        self.failures: dict[tuple[str, str | None], int] = {}
        self.calls: list[tuple[str, str]] = []

    def fail(self, method: str, table: str | None = None, times: int = -1) -> None:
        """Fail ``method`` (optionally only for ``table``); times=-1 fails forever"""
        self.failures[(method, table)] = times

    def heal(self) -> None:
        self.failures.clear()

    def _call(self, method: str, locator) -> None:
        for key in ((method, locator.table or locator.dataset), (method, None)):
            remaining = self.failures.get(key)
            if remaining:
                if remaining > 0:
                    self.failures[key] = remaining - 1
                raise StoreUnavailable(f"injected failure: {method} {locator}")
        self.calls.append((method, str(locator)))

    def list_tables(self, dataset):
        self._call("list_tables", dataset)
        return super().list_tables(dataset)

    def create_table(self, table, schema, properties=None):
        self._call("create_table", table)
        return super().create_table(table, schema, properties)

    def delete_table(self, table):
        self._call("delete_table", table)
        return super().delete_table(table)

    def delete_dataset(self, dataset):
        self._call("delete_dataset", dataset)
        return super().delete_dataset(dataset)

    def set_properties(self, table, properties):
        self._call("set_properties", table)
        return super().set_properties(table, properties)

    def append_rows(self, table, rows, snapshot_properties=None):
        self._call("append_rows", table)
        return super().append_rows(table, rows, snapshot_properties)

    def copy_table(self, source, destination, marker):
        self._call("copy_table", source)
        return super().copy_table(source, destination, marker)


@pytest.fixture
def temp_warehouse():
    """Create temporary warehouse directory"""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def store(temp_warehouse):
    """Iceberg store with failure injection"""
    return FlakyStore(temp_warehouse)


@pytest.fixture
def job_config():
    """Job configuration for proj:ds.tbl"""
    return {
        "stagedwrite.output.project.id": "proj",
        "stagedwrite.output.dataset.id": "ds",
        "stagedwrite.output.table.id": "tbl",
        "stagedwrite.output.table.schema": WORD_COUNT_SCHEMA,
        "stagedwrite.output.buffer.size": "2",
        "stagedwrite.store.max.attempts": "2",
        "stagedwrite.store.retry.backoff.seconds": "0",
        "mapreduce.job.id": "job_20140820_0001",
    }


@pytest.fixture
def task_context(job_config):
    """Factory for task contexts of the job"""

    def make(attempt_id: str, partition: str | None = None) -> dict[str, str]:
        context = dict(job_config)
        context["mapreduce.task.attempt.id"] = attempt_id
        if partition is not None:
            context["mapreduce.task.partition"] = partition
        return context

    return make


@pytest.fixture
def schema_descriptor():
    """Output schema descriptor of the word-count table"""
    return WORD_COUNT_SCHEMA
