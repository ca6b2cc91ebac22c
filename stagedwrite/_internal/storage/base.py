"""
Table Store Protocol

Abstract interface to the remote tabular store (projects, datasets,
append-only tables).

"Already absent" outcomes are reported through return values, never as
exceptions, so callers can tear down idempotently. Transient failures
surface as StoreUnavailable.
"""

from typing import Protocol

import pyarrow as pa
from pyiceberg.schema import Schema

from stagedwrite.core.locator import TableLocator


class TableStore(Protocol):
    """
    Abstract table store

    Dataset-level methods take a locator whose ``table`` is empty (or
    ignore the table part).
    """

    def dataset_exists(self, dataset: TableLocator) -> bool:
        """Check if dataset exists"""
        ...

    def list_datasets(self, project: str) -> list[str]:
        """List dataset names in a project"""
        ...

    def create_dataset(self, dataset: TableLocator) -> bool:
        """Create dataset; False if it already existed"""
        ...

    def delete_dataset(self, dataset: TableLocator) -> bool:
        """Delete an empty dataset; False if it was already absent"""
        ...

    def list_tables(self, dataset: TableLocator) -> list[str]:
        """
        List table names in a dataset

        Raises:
            DatasetNotFoundError: If the dataset does not exist
        """
        ...

    def table_exists(self, table: TableLocator) -> bool:
        """Check if table exists"""
        ...

    def create_table(
        self,
        table: TableLocator,
        schema: Schema,
        properties: dict[str, str] | None = None,
    ) -> bool:
        """Create table; False if it already existed"""
        ...

    def delete_table(self, table: TableLocator) -> bool:
        """Delete table and its data; False if it was already absent"""
        ...

    def table_schema(self, table: TableLocator) -> Schema:
        """Schema of an existing table"""
        ...

    def get_properties(self, table: TableLocator) -> dict[str, str]:
        """Table properties (metadata key/values)"""
        ...

    def set_properties(self, table: TableLocator, properties: dict[str, str]) -> None:
        """Update table properties"""
        ...

    def append_rows(
        self,
        table: TableLocator,
        rows: pa.Table,
        snapshot_properties: dict[str, str] | None = None,
    ) -> int:
        """Append rows atomically; returns the number of rows appended"""
        ...

    def read_rows(self, table: TableLocator) -> pa.Table:
        """Read the full contents of a table"""
        ...

    def count_rows(self, table: TableLocator) -> int:
        """Number of rows in a table"""
        ...

    def copy_table(self, source: TableLocator, destination: TableLocator, marker: str) -> int:
        """
        Append the full contents of ``source`` to ``destination``

        ``marker`` is recorded atomically with the appended data and later
        reported by merge_markers().
        """
        ...

    def merge_markers(self, table: TableLocator) -> set[str]:
        """Markers of every copy_table() that landed in ``table``"""
        ...
