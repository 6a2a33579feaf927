"""
Table: row-store operations over one managed sheet.

A ``Table`` is a handle on a sheet laid out as three header rows followed by
data rows. The grid offers no transactions, so each operation follows a
read-before-write discipline: it re-reads the header (and, for mutations,
every data row) immediately before computing its write, and leaves the
handle unsynced afterwards so the next caller reads again.

Manifesto:
    - **Header is the sequencer:** the row count cell (A3) decides where the
      next append lands; it is re-read before every write
    - **Whole batch or nothing:** one non-conforming row aborts the upsert
      before any request is sent
    - **Insert if not duplicate:** rows colliding on the unique columns are
      skipped and logged, never raised
    - **Compaction on delete:** kept rows are rewritten from the data offset
      and the freed trailing range is cleared explicitly

Architecture:
    ::

                 ┌────────────┐   operation starts: re-read header
                 │  UNSYNCED  │ ─────────────────────────────────┐
                 └────────────┘                                  ▼
                       ▲                                   ┌──────────┐
                       │  operation ends                   │  SYNCED  │
                       │  (mutations rebuild               └──────────┘
                       │   schema and index first)               │ upsert_if / delete
                       │                                   ┌──────────┐
                       └───────────────────────────────────│ MUTATING │
                                                           └──────────┘

    One process, one logical writer per table: the handle is not safe for
    concurrent use and nothing prevents two processes from racing on the
    row count cell.

Examples:
    >>> table = database.create_table(Member, Constraint.unique("Email"))
    >>> table.upsert_if([Member(True, 30, "a@x"), Member(False, 41, "b@x")])
    True
    >>> table.select_and_filter(Age=lambda age: age > 35)
    [(False, 41, 'b@x')]
    >>> table.delete(lambda row: row[0] is False)
    [1]

Tags:
    table, row-store, upsert, select, delete, compaction, sheetstore
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from enum import Enum
from typing import Any

from sheetstore.core.errors import BackendRejectedError, SheetStoreError, TableDroppedError
from sheetstore.core.logging import LogContext, get_logger
from sheetstore.core.protocols import GridBackend, SheetRef, is_success
from sheetstore.engine.addressing import CellRange
from sheetstore.engine.index import UniqueIndex
from sheetstore.engine.schema import DATA_START_COL, DATA_START_ROW, HEADER_ROWS, Schema

logger = get_logger(__name__)

Row = tuple[Any, ...]
Predicate = Callable[[Any], bool]
RowPredicate = Callable[[Row], bool]
Conditions = Mapping[Any, Predicate]

# Row 2 holds row count, column count and the constraint blob.
_META_WIDTH = 3


class TableState(str, Enum):
    """How far a handle's cached schema and index can be trusted."""

    UNSYNCED = "unsynced"
    SYNCED = "synced"
    MUTATING = "mutating"


class Table:
    """
    Handle on one managed sheet.

    Obtain tables from :class:`~sheetstore.engine.database.Database`
    (``create_table``, ``find_table``, ``list_tables``) rather than building
    them directly.
    """

    def __init__(
        self,
        backend: GridBackend,
        container_id: str,
        sheet: SheetRef,
        schema: Schema,
        *,
        state: TableState = TableState.UNSYNCED,
    ) -> None:
        self.backend = backend
        self.container_id = container_id
        self.sheet = sheet
        self.schema = schema
        self.index = UniqueIndex(schema.unique_positions())
        self.state = state
        self.dropped = False

    @classmethod
    def open(
        cls,
        backend: GridBackend,
        container_id: str,
        sheet: SheetRef,
        *,
        max_columns: int = 256,
    ) -> Table:
        """Read an existing sheet's header and return a handle on it.

        Raises:
            CorruptTableHeaderError: the sheet does not carry a valid header.
        """
        rng = CellRange(sheet.title, 0, 0, HEADER_ROWS, max(max_columns, _META_WIDTH))
        header = backend.read_range(container_id, rng.to_a1())
        schema = Schema.from_header(sheet.title, header)
        return cls(backend, container_id, sheet, schema, state=TableState.SYNCED)

    @property
    def name(self) -> str:
        return self.sheet.title

    @property
    def row_count(self) -> int:
        """Row count as of the last sync."""
        return self.schema.row_count

    def __repr__(self) -> str:
        return f"Table({self.name!r}, rows={self.schema.row_count}, state={self.state.value})"

    # =========================================================================
    # SYNC
    # =========================================================================

    def _check_live(self) -> None:
        if self.dropped:
            raise TableDroppedError(f"table {self.name!r} was dropped").with_context(table=self.name)

    def _refresh_header(self) -> Schema:
        width = max(self.schema.width, _META_WIDTH)
        rng = CellRange(self.name, 0, 0, HEADER_ROWS, width)
        header = self.backend.read_range(self.container_id, rng.to_a1())
        self.schema = Schema.from_header(self.name, header)
        self.state = TableState.SYNCED
        logger.debug("table_synced", rows=self.schema.row_count)
        return self.schema

    def _read_rows(self, count: int) -> list[Row]:
        if count <= 0:
            return []
        rng = CellRange(
            self.name,
            DATA_START_ROW,
            DATA_START_COL,
            DATA_START_ROW + count,
            DATA_START_COL + self.schema.width,
        )
        raw = self.backend.read_range(self.container_id, rng.to_a1())
        # Reads trim trailing empty rows; an all-blank row still counts.
        raw = list(raw) + [[] for _ in range(count - len(raw))]
        return [self.schema.decode_row(r, i) for i, r in enumerate(raw[:count])]

    def _rebuild_index(self, rows: Iterable[Row]) -> None:
        self.index = UniqueIndex(self.schema.unique_positions())
        self.index.build(rows)

    def sync(self) -> list[Row]:
        """Re-read the header and every data row; rebuild the index.

        Returns the decoded rows.
        """
        self._check_live()
        self._refresh_header()
        rows = self._read_rows(self.schema.row_count)
        self._rebuild_index(rows)
        return rows

    @contextmanager
    def _operation(self, name: str, *, mutating: bool = False) -> Iterator[None]:
        self._check_live()
        with LogContext(database=self.container_id, table=self.name, operation=name):
            try:
                self._refresh_header()
                if mutating:
                    self.state = TableState.MUTATING
                yield
            except SheetStoreError as exc:
                exc.with_context(table=self.name, operation=name)
                raise
            finally:
                if mutating and not self.dropped:
                    self._rebuild_after_mutation()
                self.state = TableState.UNSYNCED

    def _rebuild_after_mutation(self) -> None:
        try:
            self.sync()
        except SheetStoreError as exc:
            # Cache stays stale; the next operation re-reads the header anyway.
            logger.warning("table_rebuild_failed", error=exc)

    # =========================================================================
    # READS
    # =========================================================================

    def select(self, n: int = -1) -> list[Row]:
        """
        Read the first ``n`` data rows, or all of them when ``n == -1``.

        Returns an empty list when the table has no rows or ``n == 0``.
        Cells come back decoded to their column kinds.
        """
        if n < -1:
            raise ValueError(f"n must be -1 or non-negative, got {n}")
        with self._operation("select"):
            count = self.schema.row_count
            if count == 0 or n == 0:
                return []
            return self._read_rows(count if n == -1 else min(n, count))

    def _compile(self, conditions: Conditions) -> list[tuple[int, Predicate]]:
        return [(self.schema.position(column), predicate) for column, predicate in conditions.items()]

    def select_and_filter(self, filters: Conditions | None = None, **by_name: Predicate) -> list[Row]:
        """
        Full select, keeping rows for which every predicate holds.

        ``filters`` maps a column (index or name) to a predicate over that
        column's value. Keyword arguments are shorthand for named columns.
        """
        with self._operation("select_and_filter"):
            checks = self._compile({**(filters or {}), **by_name})
            rows = self._read_rows(self.schema.row_count)
            if not checks:
                return rows
            return [row for row in rows if all(p(row[pos]) for pos, p in checks)]

    def describe(self) -> dict[str, Any]:
        """Schema summary plus the handle's state, without a remote call."""
        summary = self.schema.describe()
        summary["state"] = self.state.value
        summary["dropped"] = self.dropped
        return summary

    # =========================================================================
    # WRITES
    # =========================================================================

    def _write(self, rng: CellRange, values: Sequence[Sequence[Any]]) -> int:
        status = self.backend.write_range(self.container_id, rng.to_a1(), [list(v) for v in values])
        if not is_success(status):
            logger.error("backend_rejected", call="write_range", range=rng.to_a1(), status=status)
        return status

    def _write_row_count(self, count: int) -> int:
        return self._write(CellRange(self.name, 2, 0, 3, 1), [[str(count)]])

    def _rejected(self, call: str, rng: CellRange, status: int) -> BackendRejectedError:
        return BackendRejectedError(f"{call} {rng} returned {status}", status_code=status).with_context(
            range=rng.to_a1()
        )

    def upsert_if(self, rows: Iterable[Any], *conditions: Conditions, append: bool = True) -> bool:
        """
        Insert rows that are not duplicates and pass every condition.

        Args:
            rows: Record instances, mappings or flat value sequences.
            *conditions: Maps of column (index or name) to predicate. A row
                is written only if every predicate of every map holds.
            append: Write after the last row (True) or from the first data
                row, replacing the stored rows (False).

        Returns:
            False for empty input or when the backend rejects a write;
            True otherwise, including when every row was skipped.

        Raises:
            SchemaMismatchError: any row does not conform; nothing is written.
        """
        rows = list(rows)
        if not rows:
            logger.warning("upsert_empty_input", table=self.name)
            return False

        with self._operation("upsert_if", mutating=True):
            conformed = [self.schema.conform_row(row, i) for i, row in enumerate(rows)]
            checks = [self._compile(c) for c in conditions]

            old_count = self.schema.row_count
            # An overwrite replaces the stored rows, so only the batch itself dedups.
            self._rebuild_index(self._read_rows(old_count) if append else [])

            base = old_count if append else 0
            accepted: list[Row] = []
            for i, row in enumerate(conformed):
                found, positions = self.index.contains(row)
                if found:
                    logger.info("upsert_skipped_duplicate", row_position=i, existing=positions)
                    continue
                if not all(p(row[pos]) for check in checks for pos, p in check):
                    logger.debug("upsert_skipped_condition", row_position=i)
                    continue
                self.index.add(row, base + len(accepted))
                accepted.append(row)

            if not accepted:
                logger.info("upsert_nothing_to_write", received=len(rows))
                return True

            start = DATA_START_ROW + base
            rng = CellRange(
                self.name,
                start,
                DATA_START_COL,
                start + len(accepted),
                DATA_START_COL + self.schema.width,
            )
            if not is_success(self._write(rng, accepted)):
                return False
            new_count = base + len(accepted)
            if new_count < old_count:
                stale = CellRange(
                    self.name,
                    DATA_START_ROW + new_count,
                    DATA_START_COL,
                    DATA_START_ROW + old_count,
                    DATA_START_COL + self.schema.width,
                )
                status = self.backend.clear_range(self.container_id, stale.to_a1())
                if not is_success(status):
                    logger.error("backend_rejected", call="clear_range", range=stale.to_a1(), status=status)
                    return False
            if not is_success(self._write_row_count(new_count)):
                return False

            logger.info("upsert_written", rows=len(accepted), skipped=len(rows) - len(accepted), append=append)
            return True

    def delete(self, predicate: RowPredicate) -> list[int]:
        """
        Remove rows matching ``predicate`` and compact the rest.

        Returns the zero-based positions the removed rows held, or an empty
        list when nothing matched (no request is written then).

        Raises:
            BackendRejectedError: a rewrite, clear or row count write failed.
        """
        with self._operation("delete", mutating=True):
            count = self.schema.row_count
            rows = self._read_rows(count)
            removed = [i for i, row in enumerate(rows) if predicate(row)]
            if not removed:
                return []

            dropped = set(removed)
            kept = [row for i, row in enumerate(rows) if i not in dropped]
            width = DATA_START_COL + self.schema.width

            if kept:
                rng = CellRange(self.name, DATA_START_ROW, DATA_START_COL, DATA_START_ROW + len(kept), width)
                status = self._write(rng, kept)
                if not is_success(status):
                    raise self._rejected("write_range", rng, status)

            stale = CellRange(self.name, DATA_START_ROW + len(kept), DATA_START_COL, DATA_START_ROW + count, width)
            status = self.backend.clear_range(self.container_id, stale.to_a1())
            if not is_success(status):
                logger.error("backend_rejected", call="clear_range", range=stale.to_a1(), status=status)
                raise self._rejected("clear_range", stale, status)

            status = self._write_row_count(len(kept))
            if not is_success(status):
                raise self._rejected("write_range", CellRange(self.name, 2, 0, 3, 1), status)

            logger.info("rows_deleted", removed=len(removed), kept=len(kept))
            return removed

    def drop(self) -> bool:
        """Delete the backing sheet. The handle is unusable afterwards."""
        self._check_live()
        with LogContext(database=self.container_id, table=self.name, operation="drop"):
            if not self.backend.delete_sheet(self.container_id, self.sheet.sheet_id):
                logger.error("backend_rejected", call="delete_sheet")
                return False
            self.dropped = True
            self.state = TableState.UNSYNCED
            logger.info("table_dropped")
            return True


__all__ = ["Table", "TableState"]
