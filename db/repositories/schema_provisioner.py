"""
Destination table provisioning from the schema catalog.

Destination tables are plain SQLAlchemy Core tables inside a Postgres schema
(the "dataset"). They are created lazily, the first time a file needs them.
"""

from __future__ import annotations

import logging
import threading
import time

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    Float,
    Index,
    MetaData,
    Table,
    Text,
    inspect,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.schema import CreateSchema
from sqlalchemy.types import TypeEngine

from db.repositories.errors import SchemaCatalogError, SchemaProvisioningError
from ingestion.catalog import FieldType, SchemaCatalog, SchemaField

logger = logging.getLogger(__name__)

_RETRY_BACKOFF_SECONDS = 0.5


def _column_type(field_type: str) -> TypeEngine:
    if field_type == FieldType.STRING:
        return Text()
    if field_type == FieldType.INTEGER:
        return BigInteger()
    if field_type == FieldType.FLOAT:
        return Float()
    if field_type == FieldType.JSON:
        return JSON().with_variant(JSONB(), "postgresql")
    return DateTime(timezone=True)


def _column(field: SchemaField) -> Column:
    return Column(field.name, _column_type(field.field_type), nullable=not field.required)


class SchemaProvisioner:
    """
    Creates destination tables on demand. Safe to call ``ensure`` from many
    threads; across processes, a lost creation race is detected by
    re-checking existence.
    """

    def __init__(
        self,
        engine: Engine,
        catalog: SchemaCatalog,
        *,
        dataset: str | None = None,
        max_retries: int = 2,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._dataset = dataset
        self._max_retries = max(0, max_retries)
        self._metadata = MetaData(schema=dataset)
        self._lock = threading.Lock()
        self._ensured: set[str] = set()
        self._dataset_ready = dataset is None
        # Built up front: Table construction mutates the shared MetaData.
        self._tables: dict[str, Table] = {table_id: self._build_table(table_id) for table_id in catalog.table_ids}

    @property
    def catalog(self) -> SchemaCatalog:
        return self._catalog

    @property
    def dataset(self) -> str | None:
        return self._dataset

    def table_for(self, table_id: str) -> Table:
        """
        Return the Core ``Table`` for a catalog entry. Raises ``SchemaCatalogError``.
        """

        table = self._tables.get(table_id)
        if table is None:
            raise SchemaCatalogError(f"No schema registered for table '{table_id}'.")
        return table

    def _build_table(self, table_id: str) -> Table:
        return Table(
            table_id,
            self._metadata,
            *(_column(field) for field in self._catalog.fields(table_id)),
            Index(f"ix_{table_id}_arquivo_origem", "arquivo_origem"),
            comment=f"catalog_version={self._catalog.version}",
        )

    def table_exists(self, table_id: str) -> bool:
        return inspect(self._engine).has_table(table_id, schema=self._dataset)

    def ensure(self, table_id: str) -> Table:
        """
        Ensure the dataset and the table exist. Idempotent.
        """

        table = self.table_for(table_id)
        if table_id in self._ensured:
            return table

        with self._lock:
            if table_id in self._ensured:
                return table
            self._with_retries(table_id, lambda: self._create(table))
            self._ensured.add(table_id)
        return table

    def recreate(self, table_id: str) -> Table:
        """
        Drop and create the table, discarding all of its rows.
        """

        table = self.table_for(table_id)
        with self._lock:
            self._with_retries(table_id, lambda: self._drop_and_create(table))
            self._ensured.add(table_id)
        logger.warning(
            "Destination table recreated table_id=%s dataset=%s catalog_version=%s",
            table_id,
            self._dataset,
            self._catalog.version,
        )
        return table

    def _ensure_dataset(self) -> None:
        if self._dataset_ready:
            return
        with self._engine.begin() as connection:
            connection.execute(CreateSchema(self._dataset, if_not_exists=True))
        self._dataset_ready = True
        logger.info("Destination dataset ready dataset=%s", self._dataset)

    def _create(self, table: Table) -> None:
        self._ensure_dataset()
        if self.table_exists(table.name):
            return
        try:
            table.create(self._engine, checkfirst=True)
        except (IntegrityError, ProgrammingError):
            # Another process created it between the existence check and CREATE.
            if self.table_exists(table.name):
                logger.info("Destination table created concurrently table_id=%s", table.name)
                return
            raise
        logger.info(
            "Created destination table table_id=%s dataset=%s catalog_version=%s",
            table.name,
            self._dataset,
            self._catalog.version,
        )

    def _drop_and_create(self, table: Table) -> None:
        self._ensure_dataset()
        table.drop(self._engine, checkfirst=True)
        table.create(self._engine, checkfirst=True)

    def _with_retries(self, table_id: str, operation) -> None:
        attempt = 0
        while True:
            try:
                operation()
                return
            except OperationalError as exc:
                if attempt >= self._max_retries:
                    raise SchemaProvisioningError(
                        f"Failed to provision table '{table_id}' after {attempt + 1} attempt(s): {exc}"
                    ) from exc
                attempt += 1
                logger.warning(
                    "Transient provisioning failure table_id=%s attempt=%d error=%s",
                    table_id,
                    attempt,
                    exc,
                )
                time.sleep(_RETRY_BACKOFF_SECONDS * attempt)
            except (IntegrityError, ProgrammingError) as exc:
                raise SchemaProvisioningError(f"Failed to provision table '{table_id}': {exc}") from exc
