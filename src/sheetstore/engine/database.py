"""
Database: the tables of one managed container.

A database is a remote spreadsheet (a *container*); each managed sheet in
it is a table. The backend creates default sheets (``Sheet1``, ...) of its
own accord. Those are never tables: they are skipped when listing, and a
table may not take such a name.

Examples:
    >>> db = manager.create_database("inventory")
    >>> items = db.create_table(Item, Constraint.unique("Sku"))
    >>> db.find_table("Item") is not None
    True
    >>> [t.name for t in db.list_tables()]
    ['Item']

Tags:
    database, container, table-lifecycle, sheetstore
"""

from __future__ import annotations

import re

from sheetstore.core.errors import (
    BackendRejectedError,
    CorruptTableHeaderError,
    DuplicateTableError,
    InvalidTableNameError,
)
from sheetstore.core.logging import LogContext, get_logger
from sheetstore.core.protocols import ContainerRef, GridBackend, SheetRef, is_success
from sheetstore.engine.addressing import CellRange
from sheetstore.engine.constraint import Constraint
from sheetstore.engine.schema import HEADER_ROWS, Schema
from sheetstore.engine.table import Table, TableState

logger = get_logger(__name__)


class Database:
    """Handle on one managed container."""

    def __init__(
        self,
        backend: GridBackend,
        container: ContainerRef,
        *,
        prefix: str = "",
        reserved_sheet_pattern: str = r"Sheet\d*",
        max_columns: int = 256,
    ) -> None:
        self.backend = backend
        self.container = container
        self.prefix = prefix
        self.max_columns = max_columns
        self._reserved = re.compile(reserved_sheet_pattern)

    @property
    def container_id(self) -> str:
        return self.container.container_id

    @property
    def name(self) -> str:
        """Container title without the managed prefix."""
        title = self.container.title
        return title[len(self.prefix):] if self.prefix and title.startswith(self.prefix) else title

    def __repr__(self) -> str:
        return f"Database({self.name!r}, id={self.container_id!r})"

    def is_reserved(self, title: str) -> bool:
        """True for the backend's own default sheet names."""
        return self._reserved.fullmatch(title) is not None

    def sheets(self) -> list[SheetRef]:
        return self.backend.list_sheets(self.container_id)

    # =========================================================================
    # TABLES
    # =========================================================================

    def create_table(
        self,
        definition: type | Schema,
        constraint: Constraint | None = None,
        *,
        name: str | None = None,
    ) -> Table:
        """
        Create a table from a record type or a prepared ``Schema``.

        The sheet is named after ``name``, else the schema name, else the
        record class name. The returned table is synced with zero rows.

        Raises:
            UnsupportedFieldKindError: a record field has an unsupported type.
            ConstraintError: the constraint names an unknown column.
            InvalidTableNameError: the name looks like a default sheet.
            DuplicateTableError: a sheet with the name already exists.
            BackendRejectedError: the header could not be written.
        """
        if isinstance(definition, Schema):
            schema = Schema(
                name=name or definition.name,
                columns=definition.columns,
                types=definition.types,
                constraint=constraint if constraint is not None else definition.constraint,
            )
        else:
            schema = Schema.from_record(definition, constraint, name)

        if self.is_reserved(schema.name):
            raise InvalidTableNameError(
                f"table name {schema.name!r} collides with the backend's default sheet names",
                field="name",
                value=schema.name,
            )
        if any(sheet.title == schema.name for sheet in self.sheets()):
            raise DuplicateTableError(schema.name)

        with LogContext(database=self.container_id, table=schema.name, operation="create_table"):
            ref = self.backend.create_sheet(self.container_id, schema.name)
            rng = CellRange(schema.name, 0, 0, HEADER_ROWS, max(schema.width, 3))
            status = self.backend.write_range(self.container_id, rng.to_a1(), schema.header_rows())
            if not is_success(status):
                logger.error("backend_rejected", call="write_range", range=rng.to_a1(), status=status)
                self.backend.delete_sheet(self.container_id, ref.sheet_id)
                raise BackendRejectedError(
                    f"could not write header of {schema.name!r}", status_code=status
                ).with_context(table=schema.name, range=rng.to_a1())

            logger.info("table_created", columns=list(schema.columns), unique=schema.unique_positions())
            return Table(self.backend, self.container_id, ref, schema, state=TableState.SYNCED)

    def _open(self, sheet: SheetRef) -> Table | None:
        try:
            return Table.open(self.backend, self.container_id, sheet, max_columns=self.max_columns)
        except CorruptTableHeaderError as exc:
            logger.warning("sheet_skipped_corrupt", table=sheet.title, error=exc)
            return None

    def find_table(self, name: str | type | Schema) -> Table | None:
        """First structurally valid, non-reserved table called ``name``.

        ``name`` may be a record type or schema, in which case its table
        name is used.
        """
        if isinstance(name, Schema):
            name = name.name
        elif isinstance(name, type):
            name = name.__name__
        for sheet in self.sheets():
            if sheet.title != name:
                continue
            if self.is_reserved(sheet.title):
                logger.debug("sheet_skipped_reserved", table=sheet.title)
                continue
            table = self._open(sheet)
            if table is not None:
                return table
        return None

    def list_tables(self) -> list[Table]:
        """Every table in the container, skipping default and corrupt sheets."""
        tables = []
        for sheet in self.sheets():
            if self.is_reserved(sheet.title):
                logger.debug("sheet_skipped_reserved", table=sheet.title)
                continue
            table = self._open(sheet)
            if table is not None:
                tables.append(table)
        return tables

    def drop_table(self, name: str | type | Schema) -> bool:
        """Drop the table called ``name``. False if there is none."""
        table = self.find_table(name)
        if table is None:
            logger.info("drop_table_missing", table=str(name))
            return False
        return table.drop()


__all__ = ["Database"]
