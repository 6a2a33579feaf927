"""
Schema model: column layout of a table and its three header rows.

A managed sheet describes itself in its first three rows::

    row 0   column names               Active   Age     Email
    row 1   column type tags           bool     int32   string
    row 2   rowCount, columnCount,     "2"      3       {"autoIncrement":false,...}
            constraint blob (optional)
    row 3+  data, one record per row

``Schema`` holds that description in memory, derives it from a record type,
encodes it back to header rows, and conforms or decodes row values against
the declared column kinds.

Manifesto:
    - **Records describe tables:** dataclasses and pydantic models map field
      by field to columns, in declaration order
    - **Fixed kind vocabulary:** ``ColumnKind`` is a constant table of the
      stored type tags; nothing is discovered at runtime
    - **Defensive parsing:** malformed headers raise
      ``CorruptTableHeaderError``, undecodable cells ``CorruptRowError``

Examples:
    >>> from dataclasses import dataclass
    >>> from typing import Annotated
    >>> @dataclass
    ... class Member:
    ...     Active: bool
    ...     Age: Annotated[int, ColumnKind.INT32]
    ...     Email: str
    >>> schema = Schema.from_record(Member)
    >>> [k.value for k in schema.types]
    ['bool', 'int32', 'string']

Tags:
    schema, header, record, column-kind, sheetstore
"""

from __future__ import annotations

import dataclasses
import typing
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from sheetstore.core.errors import (
    ConstraintError,
    CorruptRowError,
    CorruptTableHeaderError,
    SchemaMismatchError,
    UnsupportedFieldKindError,
)
from sheetstore.engine.constraint import Constraint

HEADER_ROWS = 3
DATA_START_ROW = 3
DATA_START_COL = 0


class ColumnKind(str, Enum):
    """Supported primitive column kinds; values are the stored type tags."""

    BOOL = "bool"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"

    @property
    def is_integer(self) -> bool:
        return self in _INT_BOUNDS

    @property
    def is_float(self) -> bool:
        return self in (ColumnKind.FLOAT32, ColumnKind.FLOAT64)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self.is_float

    @property
    def bounds(self) -> tuple[int, int] | None:
        """Inclusive value range for integer kinds."""
        return _INT_BOUNDS.get(self)

    @classmethod
    def from_tag(cls, tag: Any) -> ColumnKind:
        try:
            return cls(tag)
        except ValueError:
            raise CorruptTableHeaderError(f"unknown column type tag: {tag!r}") from None


_INT_BOUNDS: dict[ColumnKind, tuple[int, int]] = {
    ColumnKind.INT: (-(2**63), 2**63 - 1),
    ColumnKind.INT8: (-(2**7), 2**7 - 1),
    ColumnKind.INT16: (-(2**15), 2**15 - 1),
    ColumnKind.INT32: (-(2**31), 2**31 - 1),
    ColumnKind.INT64: (-(2**63), 2**63 - 1),
    ColumnKind.UINT: (0, 2**64 - 1),
    ColumnKind.UINT8: (0, 2**8 - 1),
    ColumnKind.UINT16: (0, 2**16 - 1),
    ColumnKind.UINT32: (0, 2**32 - 1),
    ColumnKind.UINT64: (0, 2**64 - 1),
}

# Plain Python annotations and the kind they map to when no width is given.
_DEFAULT_KINDS: dict[type, ColumnKind] = {
    bool: ColumnKind.BOOL,
    int: ColumnKind.INT64,
    float: ColumnKind.FLOAT64,
    str: ColumnKind.STRING,
}


# =============================================================================
# VALUE CONFORMING / DECODING
# =============================================================================


def conform_value(kind: ColumnKind, value: Any) -> Any:
    """Check a caller-supplied value against ``kind`` and normalise it.

    Ints are accepted for float columns (and become floats); bools are never
    accepted as numbers.

    Raises:
        SchemaMismatchError: the value's type or range does not fit ``kind``.
    """
    if kind is ColumnKind.BOOL:
        if isinstance(value, bool):
            return value
    elif kind is ColumnKind.STRING:
        if isinstance(value, str):
            return value
    elif kind.is_integer:
        if isinstance(value, int) and not isinstance(value, bool):
            low, high = kind.bounds
            if not low <= value <= high:
                raise SchemaMismatchError(
                    f"value {value} out of range for {kind.value}",
                    value=value,
                )
            return value
    elif kind.is_float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    raise SchemaMismatchError(
        f"expected {kind.value}, got {type(value).__name__}",
        value=value,
    )


def decode_cell(kind: ColumnKind, raw: Any) -> Any:
    """Decode a cell read back from the backend to ``kind``.

    The grid service may hand back formatted strings (``"TRUE"``, ``"42"``)
    or typed values; both are accepted. A missing or empty cell decodes to
    ``""`` for string columns and is corrupt for every other kind.

    Raises:
        CorruptRowError: the cell cannot represent a value of ``kind``.
    """
    if raw is None or raw == "":
        if kind is ColumnKind.STRING:
            return ""
        raise CorruptRowError(f"empty cell in {kind.value} column")

    try:
        if kind is ColumnKind.STRING:
            return raw if isinstance(raw, str) else str(raw)
        if kind is ColumnKind.BOOL:
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().upper()
            if text in ("TRUE", "FALSE"):
                return text == "TRUE"
            raise CorruptRowError(f"not a bool: {raw!r}")
        if kind.is_integer:
            if isinstance(raw, bool):
                raise CorruptRowError(f"not an integer: {raw!r}")
            if isinstance(raw, float):
                if not raw.is_integer():
                    raise CorruptRowError(f"not an integer: {raw!r}")
                raw = int(raw)
            value = raw if isinstance(raw, int) else int(str(raw).strip())
            return conform_value(kind, value)
        if isinstance(raw, bool):
            raise CorruptRowError(f"not a number: {raw!r}")
        return float(raw)
    except (TypeError, ValueError, SchemaMismatchError) as exc:
        raise CorruptRowError(f"cannot decode {raw!r} as {kind.value}", cause=exc) from exc


# =============================================================================
# RECORD INTROSPECTION
# =============================================================================


def _kind_for_annotation(annotation: Any, metadata: Sequence[Any] = ()) -> ColumnKind | None:
    if typing.get_origin(annotation) is typing.Annotated:
        base, *extra = typing.get_args(annotation)
        return _kind_for_annotation(base, tuple(extra) + tuple(metadata))
    for item in metadata:
        if isinstance(item, ColumnKind):
            return item
    return _DEFAULT_KINDS.get(annotation)


def _is_pydantic_model(record_type: Any) -> bool:
    return isinstance(record_type, type) and issubclass(record_type, BaseModel)


def record_fields(record_type: type) -> list[tuple[str, ColumnKind]]:
    """Ordered ``(name, kind)`` pairs of a dataclass or pydantic model.

    Raises:
        UnsupportedFieldKindError: a field's annotation is not a supported
            primitive kind, or the type is not a record type at all.
    """
    if dataclasses.is_dataclass(record_type) and isinstance(record_type, type):
        hints = typing.get_type_hints(record_type, include_extras=True)
        pairs = [(f.name, hints[f.name], ()) for f in dataclasses.fields(record_type)]
    elif _is_pydantic_model(record_type):
        pairs = [
            (name, info.annotation, tuple(info.metadata))
            for name, info in record_type.model_fields.items()
        ]
    else:
        raise UnsupportedFieldKindError(
            f"{record_type!r} is not a dataclass or pydantic model",
            value=record_type,
        )

    result = []
    for name, annotation, metadata in pairs:
        kind = _kind_for_annotation(annotation, metadata)
        if kind is None:
            raise UnsupportedFieldKindError(
                f"field {name!r} of {record_type.__name__} has unsupported type {annotation!r}",
                field=name,
                value=annotation,
            )
        result.append((name, kind))
    return result


def flatten_record(record: Any, columns: Sequence[str]) -> list[Any]:
    """Normalise one row input to a positional value list.

    Accepts a dataclass instance, a pydantic model instance, a mapping keyed
    by column name, or an already-flat sequence of values. Named inputs are
    matched to ``columns`` by name and must carry exactly those names.
    """
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        named = {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    elif isinstance(record, BaseModel):
        named = {name: getattr(record, name) for name in type(record).model_fields}
    elif isinstance(record, Mapping):
        named = dict(record)
    else:
        named = None
    if named is not None:
        missing = [c for c in columns if c not in named]
        unknown = [k for k in named if k not in columns]
        if missing or unknown:
            raise SchemaMismatchError(
                f"row names do not match columns (missing {missing}, unknown {unknown})",
                value=named,
            )
        return [named[c] for c in columns]
    if isinstance(record, Sequence) and not isinstance(record, (str, bytes)):
        return list(record)
    raise SchemaMismatchError(
        f"unsupported row input type {type(record).__name__}",
        value=record,
    )


# =============================================================================
# SCHEMA
# =============================================================================


@dataclass
class Schema:
    """In-memory description of one table."""

    name: str
    columns: tuple[str, ...]
    types: tuple[ColumnKind, ...]
    row_count: int = 0
    constraint: Constraint | None = None
    _positions: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.columns = tuple(self.columns)
        self.types = tuple(ColumnKind(t) for t in self.types)
        if len(self.columns) != len(self.types):
            raise UnsupportedFieldKindError(
                f"{len(self.columns)} columns but {len(self.types)} types"
            )
        if not self.columns:
            raise UnsupportedFieldKindError(f"table {self.name!r} has no columns")
        if len(set(self.columns)) != len(self.columns):
            raise UnsupportedFieldKindError(f"table {self.name!r} repeats a column name")
        if self.row_count < 0:
            raise ValueError("row_count must not be negative")
        self._positions = {name: i for i, name in enumerate(self.columns)}
        if self.constraint is not None:
            self.constraint.validate_against(self.columns)

    # -- construction ---------------------------------------------------------

    @classmethod
    def build(
        cls,
        name: str,
        fields: Sequence[tuple[str, ColumnKind | str]],
        constraint: Constraint | None = None,
    ) -> Schema:
        """Declarative builder: ``Schema.build("T", [("A", "bool"), ...])``."""
        return cls(
            name=name,
            columns=tuple(n for n, _ in fields),
            types=tuple(ColumnKind(k) for _, k in fields),
            constraint=constraint,
        )

    @classmethod
    def from_record(
        cls,
        record_type: type,
        constraint: Constraint | None = None,
        name: str | None = None,
    ) -> Schema:
        """Derive a schema from a dataclass or pydantic model type.

        The table name defaults to the class name.
        """
        return cls.build(name or record_type.__name__, record_fields(record_type), constraint)

    # -- lookups --------------------------------------------------------------

    @property
    def width(self) -> int:
        return len(self.columns)

    def position(self, column: str | int) -> int:
        """Position of a column given by name or index."""
        if isinstance(column, int) and not isinstance(column, bool):
            if not 0 <= column < self.width:
                raise SchemaMismatchError(f"column index {column} out of range", value=column)
            return column
        try:
            return self._positions[column]
        except KeyError:
            raise SchemaMismatchError(f"unknown column {column!r}", field=str(column)) from None

    def unique_positions(self) -> list[int]:
        """Ascending positions of the unique-constrained columns."""
        if self.constraint is None or self.constraint.is_empty:
            return []
        return sorted(self._positions[c] for c in self.constraint.unique_columns)

    # -- rows -----------------------------------------------------------------

    def conform_row(self, row: Any, position: int | None = None) -> tuple[Any, ...]:
        """Flatten a row input and check it against the schema.

        Raises:
            SchemaMismatchError: arity or per-column kind mismatch.
        """
        try:
            values = flatten_record(row, self.columns)
            if len(values) != self.width:
                raise SchemaMismatchError(
                    f"row has {len(values)} values, table {self.name!r} has {self.width} columns",
                    value=values,
                )
            conformed = []
            for i, (kind, value) in enumerate(zip(self.types, values)):
                try:
                    conformed.append(conform_value(kind, value))
                except SchemaMismatchError as exc:
                    exc.field = self.columns[i]
                    raise
            return tuple(conformed)
        except SchemaMismatchError as exc:
            exc.row_position = position
            exc.with_context(table=self.name)
            raise

    def decode_row(self, raw: Sequence[Any], position: int | None = None) -> tuple[Any, ...]:
        """Decode a data row read from the backend (short rows are padded)."""
        cells = list(raw[: self.width]) + [None] * max(0, self.width - len(raw))
        try:
            return tuple(decode_cell(kind, cell) for kind, cell in zip(self.types, cells))
        except CorruptRowError as exc:
            exc.with_context(table=self.name, row=position)
            raise

    # -- header ---------------------------------------------------------------

    def header_rows(self) -> list[list[Any]]:
        """The three header rows exactly as they are stored."""
        meta: list[Any] = [str(self.row_count), self.width]
        if self.constraint is not None:
            meta.append(self.constraint.to_json())
        return [list(self.columns), [k.value for k in self.types], meta]

    @classmethod
    def from_header(cls, name: str, rows: Sequence[Sequence[Any]]) -> Schema:
        """Parse the three header rows of sheet ``name``.

        Raises:
            CorruptTableHeaderError: any header row is missing or malformed.
        """
        try:
            return cls._parse_header(name, rows)
        except CorruptTableHeaderError as exc:
            exc.with_context(table=name)
            raise

    @classmethod
    def _parse_header(cls, name: str, rows: Sequence[Sequence[Any]]) -> Schema:
        if len(rows) < HEADER_ROWS:
            raise CorruptTableHeaderError(f"expected {HEADER_ROWS} header rows, found {len(rows)}")
        names_row, types_row, meta = rows[0], rows[1], rows[2]
        if len(meta) < 2:
            raise CorruptTableHeaderError("row count and column count are missing")

        row_count = _parse_count(meta[0], "row count")
        width = _parse_count(meta[1], "column count")
        if width == 0:
            raise CorruptTableHeaderError("column count is zero")
        if len(names_row) < width or len(types_row) < width:
            raise CorruptTableHeaderError(
                f"column count {width} exceeds header width "
                f"({len(names_row)} names, {len(types_row)} types)"
            )

        columns = tuple(names_row[:width])
        if not all(isinstance(c, str) and c for c in columns):
            raise CorruptTableHeaderError(f"column names must be non-empty strings: {columns!r}")
        types = tuple(ColumnKind.from_tag(t) for t in types_row[:width])
        constraint = Constraint.from_json(meta[2]) if len(meta) > 2 else None

        try:
            return cls(name=name, columns=columns, types=types, row_count=row_count, constraint=constraint)
        except (UnsupportedFieldKindError, ConstraintError, ValueError) as exc:
            raise CorruptTableHeaderError(f"header does not describe a valid table: {exc}", cause=exc) from exc

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rows": self.row_count,
            "columns": list(self.columns),
            "types": [k.value for k in self.types],
            "unique_columns": list(self.constraint.unique_columns) if self.constraint else [],
        }


def _parse_count(raw: Any, what: str) -> int:
    if isinstance(raw, bool):
        raise CorruptTableHeaderError(f"{what} is not a number: {raw!r}")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise CorruptTableHeaderError(f"{what} is not an integer: {raw!r}")
        raw = int(raw)
    try:
        value = raw if isinstance(raw, int) else int(str(raw).strip())
    except ValueError:
        raise CorruptTableHeaderError(f"{what} is not a number: {raw!r}") from None
    if value < 0:
        raise CorruptTableHeaderError(f"{what} is negative: {value}")
    return value


__all__ = [
    "DATA_START_COL",
    "DATA_START_ROW",
    "HEADER_ROWS",
    "ColumnKind",
    "Schema",
    "conform_value",
    "decode_cell",
    "flatten_record",
    "record_fields",
]
