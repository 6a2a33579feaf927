"""
sheetstore -- a typed row store on top of a spreadsheet-like grid service.

Each database is a remote spreadsheet whose title carries a managed prefix;
each table is one sheet laid out as three header rows (column names, type
tags, row count + column count + constraint) followed by data rows.

Architecture::

    DatabaseManager            owns the QuotaThrottle, wraps the backend
      └── Database             one container: create / find / list tables
            └── Table          select, select_and_filter, upsert_if,
                               delete, drop (read-before-write)

    core/      errors, logging, settings, hashing, protocols
    engine/    addressing, quota, constraint, schema, index, table,
               database, manager
    backends/  InMemoryGridBackend, ThrottledBackend

Examples:
    >>> from dataclasses import dataclass
    >>> from sheetstore import Constraint, DatabaseManager, InMemoryGridBackend
    >>> @dataclass
    ... class Member:
    ...     Active: bool
    ...     Email: str
    >>> db = DatabaseManager(InMemoryGridBackend()).create_database("club")
    >>> members = db.create_table(Member, Constraint.unique("Email"))
    >>> members.upsert_if([Member(True, "a@x"), Member(False, "a@x")])
    True
    >>> members.select()
    [(True, 'a@x')]

Tags:
    sheetstore, row-store, spreadsheet, grid
"""

__version__ = "0.1.0"

from sheetstore.backends.memory import InMemoryGridBackend
from sheetstore.backends.throttled import ThrottledBackend
from sheetstore.core.errors import (
    BackendRejectedError,
    ConstraintError,
    CorruptRowError,
    CorruptTableHeaderError,
    DuplicateTableError,
    InvalidRangeError,
    InvalidTableNameError,
    QuotaWaitInterrupted,
    SchemaMismatchError,
    SheetStoreError,
    TableDroppedError,
    UnsupportedFieldKindError,
)
from sheetstore.core.logging import configure_from_settings, configure_logging, get_logger
from sheetstore.core.protocols import ContainerRef, GridBackend, SheetRef, SheetSnapshot
from sheetstore.core.settings import SheetStoreSettings, get_settings
from sheetstore.engine.addressing import CellRange, address_of
from sheetstore.engine.constraint import Constraint
from sheetstore.engine.database import Database
from sheetstore.engine.index import UniqueIndex
from sheetstore.engine.manager import DatabaseManager
from sheetstore.engine.quota import QuotaThrottle
from sheetstore.engine.schema import ColumnKind, Schema
from sheetstore.engine.table import Table, TableState

__all__ = [
    "__version__",
    # Engine
    "DatabaseManager",
    "Database",
    "Table",
    "TableState",
    "Schema",
    "ColumnKind",
    "Constraint",
    "UniqueIndex",
    "QuotaThrottle",
    "CellRange",
    "address_of",
    # Backends
    "GridBackend",
    "InMemoryGridBackend",
    "ThrottledBackend",
    "ContainerRef",
    "SheetRef",
    "SheetSnapshot",
    # Config / logging
    "SheetStoreSettings",
    "get_settings",
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    # Errors
    "SheetStoreError",
    "BackendRejectedError",
    "ConstraintError",
    "CorruptRowError",
    "CorruptTableHeaderError",
    "DuplicateTableError",
    "InvalidRangeError",
    "InvalidTableNameError",
    "QuotaWaitInterrupted",
    "SchemaMismatchError",
    "TableDroppedError",
    "UnsupportedFieldKindError",
]
