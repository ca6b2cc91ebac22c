"""
Iceberg Table Store

TableStore backed by Apache Iceberg through PyIceberg's SqlCatalog.
Uses a SQLite catalog for local warehouses.

Mapping:
- project  -> one SqlCatalog named after the project (shared catalog.db,
  data under <warehouse>/<project>)
- dataset  -> Iceberg namespace
- table    -> Iceberg table

Key Features:
- Atomic appends (one Iceberg snapshot per append)
- Merge markers stored in the snapshot summary of the appended data
- Thread-safe catalog access
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pyarrow as pa
from pyiceberg.catalog.sql import SqlCatalog
from pyiceberg.exceptions import (
    CommitFailedException,
    NamespaceAlreadyExistsError,
    NamespaceNotEmptyError,
    NoSuchNamespaceError,
    NoSuchTableError,
    TableAlreadyExistsError,
)
from pyiceberg.schema import Schema
from pyiceberg.table import Table
from sqlalchemy.exc import IntegrityError, OperationalError

from stagedwrite.core.exceptions import DatasetNotFoundError, StoreUnavailable
from stagedwrite.core.locator import TableLocator

logger = logging.getLogger(__name__)

# Snapshot summary key carrying the marker of a copy_table() call
MERGE_MARKER_PROPERTY = "stagedwrite.merged-from"

# Backend failures that are worth retrying
TRANSIENT_ERRORS = (CommitFailedException, OperationalError, OSError)


@contextmanager
def _store_call(what: str) -> Iterator[None]:
    """Translate transient backend failures into StoreUnavailable"""
    try:
        yield
    except TRANSIENT_ERRORS as e:
        raise StoreUnavailable(f"{what}: {e}") from e


class IcebergTableStore:
    """
    Iceberg-backed table store

    Examples:
        >>> store = IcebergTableStore("warehouse")
        >>> final = TableLocator("proj", "ds", "tbl")
        >>> store.create_dataset(final.dataset_locator())
        >>> store.create_table(final, schema)
        >>> store.append_rows(final, arrow_table)
        >>> store.read_rows(final).num_rows
    """

    CATALOG_DB = "catalog.db"

    def __init__(self, warehouse_path: str):
        """
        Initialize store

        Args:
            warehouse_path: Path to warehouse directory
        """
        self.warehouse_path = Path(warehouse_path).resolve()
        self._catalogs: dict[str, SqlCatalog] = {}
        self._lock = threading.Lock()

    @property
    def catalog_db(self) -> Path:
        return self.warehouse_path / self.CATALOG_DB

    def catalog(self, project: str) -> SqlCatalog:
        """Get the Iceberg catalog of a project, creating it if needed."""
        with self._lock:
            catalog = self._catalogs.get(project)
            if catalog is None:
                project_path = self.warehouse_path / project
                project_path.mkdir(parents=True, exist_ok=True)
                logger.info(f"Initializing Iceberg catalog {project!r} at {self.catalog_db}")
                with _store_call(f"open catalog {project}"):
                    catalog = SqlCatalog(
                        project,
                        **{
                            "uri": f"sqlite:///{self.catalog_db}",
                            "warehouse": str(project_path),
                        },
                    )
                self._catalogs[project] = catalog
            return catalog

    # Datasets

    def dataset_exists(self, dataset: TableLocator) -> bool:
        with _store_call(f"load dataset {dataset.dataset}"):
            try:
                self.catalog(dataset.project).load_namespace_properties(dataset.dataset)
                return True
            except NoSuchNamespaceError:
                return False

    def list_datasets(self, project: str) -> list[str]:
        with _store_call(f"list datasets of {project}"):
            namespaces = self.catalog(project).list_namespaces()
        return sorted(".".join(ns) for ns in namespaces)

    def create_dataset(self, dataset: TableLocator) -> bool:
        with _store_call(f"create dataset {dataset.dataset}"):
            try:
                self.catalog(dataset.project).create_namespace(dataset.dataset)
                logger.info(f"Created dataset: {dataset.dataset_locator()}")
                return True
            except NamespaceAlreadyExistsError:
                logger.debug(f"Dataset already exists: {dataset.dataset_locator()}")
                return False
            except IntegrityError as e:
                # Another writer inserted the namespace between check and insert
                if not self.dataset_exists(dataset):
                    raise StoreUnavailable(f"create dataset {dataset.dataset}: {e}") from e
                logger.debug(f"Dataset created concurrently: {dataset.dataset_locator()}")
                return False

    def delete_dataset(self, dataset: TableLocator) -> bool:
        with _store_call(f"delete dataset {dataset.dataset}"):
            try:
                self.catalog(dataset.project).drop_namespace(dataset.dataset)
            except NoSuchNamespaceError:
                return False
            except NamespaceNotEmptyError as e:
                raise StoreUnavailable(f"Dataset {dataset.dataset_locator()} is not empty") from e
        logger.info(f"Deleted dataset: {dataset.dataset_locator()}")
        return True

    def list_tables(self, dataset: TableLocator) -> list[str]:
        if not self.dataset_exists(dataset):
            raise DatasetNotFoundError(f"Dataset not found: {dataset.dataset_locator()}")
        with _store_call(f"list tables of {dataset.dataset}"):
            try:
                identifiers = self.catalog(dataset.project).list_tables(dataset.dataset)
            except NoSuchNamespaceError as e:
                raise DatasetNotFoundError(f"Dataset not found: {dataset.dataset_locator()}") from e
        return sorted(identifier[-1] for identifier in identifiers)

    # Tables

    def _load(self, table: TableLocator) -> Table:
        return self.catalog(table.project).load_table((table.dataset, table.table))

    def table_exists(self, table: TableLocator) -> bool:
        with _store_call(f"load table {table}"):
            try:
                self._load(table)
                return True
            except NoSuchTableError:
                return False

    def create_table(
        self,
        table: TableLocator,
        schema: Schema,
        properties: dict[str, str] | None = None,
    ) -> bool:
        with _store_call(f"create table {table}"):
            try:
                self.catalog(table.project).create_table(
                    identifier=(table.dataset, table.table),
                    schema=schema,
                    properties=properties or {},
                )
            except TableAlreadyExistsError:
                logger.debug(f"Table already exists: {table}")
                return False
            except NoSuchNamespaceError as e:
                raise DatasetNotFoundError(f"Dataset not found: {table.dataset_locator()}") from e
        logger.info(f"Created table: {table}")
        return True

    def delete_table(self, table: TableLocator) -> bool:
        with _store_call(f"delete table {table}"):
            try:
                self.catalog(table.project).purge_table((table.dataset, table.table))
            except (NoSuchTableError, NoSuchNamespaceError):
                return False
        logger.info(f"Deleted table: {table}")
        return True

    def table_schema(self, table: TableLocator) -> Schema:
        with _store_call(f"load table {table}"):
            return self._load(table).schema()

    def get_properties(self, table: TableLocator) -> dict[str, str]:
        with _store_call(f"load table {table}"):
            return dict(self._load(table).properties)

    def set_properties(self, table: TableLocator, properties: dict[str, str]) -> None:
        with _store_call(f"set properties on {table}"):
            iceberg_table = self._load(table)
            with iceberg_table.transaction() as transaction:
                transaction.set_properties(properties)
        logger.debug(f"Set properties on {table}: {properties}")

    # Data

    def append_rows(
        self,
        table: TableLocator,
        rows: pa.Table,
        snapshot_properties: dict[str, str] | None = None,
    ) -> int:
        if rows.num_rows == 0:
            logger.warning(f"Attempted to append empty batch to {table}")
            return 0

        with _store_call(f"append to {table}"):
            iceberg_table = self._load(table)
            iceberg_table.append(rows, snapshot_properties=snapshot_properties or {})

        logger.debug(f"Appended {rows.num_rows} rows to {table}")
        return rows.num_rows

    def read_rows(self, table: TableLocator) -> pa.Table:
        with _store_call(f"scan {table}"):
            return self._load(table).scan().to_arrow()

    def count_rows(self, table: TableLocator) -> int:
        return self.read_rows(table).num_rows

    def copy_table(self, source: TableLocator, destination: TableLocator, marker: str) -> int:
        rows = self.read_rows(source)
        if rows.num_rows == 0:
            logger.info(f"Nothing to copy from empty table {source}")
            return 0

        copied = self.append_rows(destination, rows, {MERGE_MARKER_PROPERTY: marker})
        logger.info(f"Copied {copied} rows {source} -> {destination}")
        return copied

    def merge_markers(self, table: TableLocator) -> set[str]:
        with _store_call(f"load table {table}"):
            snapshots = list(self._load(table).snapshots())

        markers = set()
        for snapshot in snapshots:
            summary = snapshot.summary
            if summary is None:
                continue
            # Custom summary keys live outside the operation field
            extra = getattr(summary, "additional_properties", None) or {}
            marker = extra.get(MERGE_MARKER_PROPERTY)
            if marker:
                markers.add(marker)
        return markers

    def get_snapshot_history(self, table: TableLocator) -> list[dict]:
        """
        Snapshots of a table, newest first

        Returns:
            List of dicts with snapshot_id, timestamp_ms, operation, marker
        """
        with _store_call(f"load table {table}"):
            snapshots = list(self._load(table).snapshots())

        history = []
        for snapshot in snapshots:
            summary = snapshot.summary
            extra = (getattr(summary, "additional_properties", None) or {}) if summary else {}
            operation = getattr(summary, "operation", None) if summary else None
            history.append(
                {
                    "snapshot_id": snapshot.snapshot_id,
                    "timestamp_ms": snapshot.timestamp_ms,
                    "operation": getattr(operation, "value", operation) or "unknown",
                    "marker": extra.get(MERGE_MARKER_PROPERTY),
                }
            )

        history.sort(key=lambda x: x["timestamp_ms"], reverse=True)
        return history
