"""Table constraints and their header encoding.

A constraint lives in the table header (row 2, column 2) as a compact JSON
object. Existing stored tables carry exactly this shape::

    {"autoIncrement":false,"primarykey":[],"uniqueColumns":["Email"]}

Keys are sorted and separators are compact so the blob is byte-identical to
what is already on disk. Decoding accepts ``primaryKey`` as well as the
stored lowercase ``primarykey`` and fills missing keys with defaults.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sheetstore.core.errors import ConstraintError, CorruptTableHeaderError


@dataclass
class Constraint:
    """Uniqueness (and primary-key metadata) for one table.

    Only ``unique_columns`` drives behaviour: rows whose values on those
    columns collide with an existing row are not inserted. ``primary_key``
    and ``auto_increment`` are stored and round-tripped for compatibility.
    """

    unique_columns: tuple[str, ...] = ()
    primary_key: tuple[str, ...] = ()
    auto_increment: bool = False

    def __post_init__(self) -> None:
        self.unique_columns = tuple(self.unique_columns)
        self.primary_key = tuple(self.primary_key)
        if len(self.primary_key) > 1:
            raise ConstraintError("primary key holds at most one column")
        if len(set(self.unique_columns)) != len(self.unique_columns):
            raise ConstraintError(
                "unique columns must not repeat",
                value=list(self.unique_columns),
            )

    @classmethod
    def unique(cls, *columns: str) -> Constraint:
        return cls(unique_columns=tuple(columns))

    @property
    def is_empty(self) -> bool:
        """True when no uniqueness rule applies."""
        return not self.unique_columns

    def set_unique_columns(self, *columns: str) -> Constraint:
        """Replace the unique column list (fluent).

        Raises:
            ConstraintError: the new list is identical to the current one.
        """
        if columns and tuple(columns) == self.unique_columns:
            raise ConstraintError(
                "unique constraint is unchanged",
                value=list(columns),
            )
        if len(set(columns)) != len(columns):
            raise ConstraintError("unique columns must not repeat", value=list(columns))
        self.unique_columns = tuple(columns)
        return self

    def set_primary_key(self, key: str | None, auto_increment: bool = False) -> Constraint:
        """Set or clear the primary key column (fluent)."""
        if not key:
            self.primary_key = ()
        else:
            self.primary_key = (key,)
            self.auto_increment = auto_increment
        return self

    def validate_against(self, columns: Iterable[str]) -> None:
        """Raise ConstraintError unless every referenced column exists."""
        known = set(columns)
        for name in (*self.unique_columns, *self.primary_key):
            if name not in known:
                raise ConstraintError(
                    f"constraint references unknown column {name!r}",
                    field=name,
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "autoIncrement": self.auto_increment,
            "primarykey": list(self.primary_key),
            "uniqueColumns": list(self.unique_columns),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, blob: str) -> Constraint | None:
        """Decode a header blob. Empty input means no constraint.

        Raises:
            CorruptTableHeaderError: the blob is not a JSON object of the
                expected shape.
        """
        if blob is None or not str(blob).strip():
            return None
        try:
            data = json.loads(blob)
        except (TypeError, ValueError) as exc:
            raise CorruptTableHeaderError(f"constraint blob is not JSON: {blob!r}", cause=exc) from exc
        if not isinstance(data, dict):
            raise CorruptTableHeaderError(f"constraint blob is not an object: {blob!r}")

        unique = data.get("uniqueColumns") or []
        primary = data.get("primarykey", data.get("primaryKey")) or []
        auto = data.get("autoIncrement", False)
        if not _is_str_list(unique) or not _is_str_list(primary) or not isinstance(auto, bool):
            raise CorruptTableHeaderError(f"constraint blob has unexpected field types: {blob!r}")
        try:
            return cls(unique_columns=tuple(unique), primary_key=tuple(primary), auto_increment=auto)
        except ConstraintError as exc:
            raise CorruptTableHeaderError(f"constraint blob is invalid: {exc.message}", cause=exc) from exc


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


__all__ = ["Constraint"]
