"""
Cell addressing: zero-based rectangles to A1-style range strings.

The engine thinks in zero-based, end-exclusive rectangles
``(sheet, start_row, start_col, end_row, end_col)``. The grid service wants
one-based, inclusive, spreadsheet-style addresses such as ``Users!A4:C9``.
``CellRange`` is the only place that conversion happens.

Column letters use bijective base-26 (``A..Z, AA..AZ, BA..``) so tables
wider than 26 columns are addressed correctly; indices 0-25 map to the same
single letters as always.

Examples:
    >>> str(CellRange("T", 0, 0, 3, 2))
    'T!A1:B3'
    >>> column_letter(26)
    'AA'
    >>> CellRange.parse("'My Table'!B2:C4")
    CellRange(sheet_name='My Table', start_row=1, start_col=1, end_row=4, end_col=3)

Tags:
    addressing, a1-notation, range, sheetstore
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sheetstore.core.errors import InvalidRangeError

_PLAIN_SHEET_NAME = re.compile(r"^[A-Za-z0-9_]+$")
_CELL = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


def column_letter(index: int) -> str:
    """Zero-based column index to its letter form (0 -> A, 25 -> Z, 26 -> AA)."""
    if index < 0:
        raise InvalidRangeError(f"column index should not be negative: {index}")
    letters = []
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters.append(chr(ord("A") + rem))
    return "".join(reversed(letters))


def column_index(letters: str) -> int:
    """Letter form of a column back to its zero-based index."""
    if not letters or not letters.isalpha() or not letters.isupper():
        raise InvalidRangeError(f"invalid column letters: {letters!r}")
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def quote_sheet_name(name: str) -> str:
    """Quote a sheet title for use in an A1 address when it needs it."""
    if _PLAIN_SHEET_NAME.match(name):
        return name
    return "'" + name.replace("'", "''") + "'"


def _split_sheet(address: str) -> tuple[str, str]:
    if address.startswith("'"):
        close = address.rfind("'!")
        if close <= 0:
            raise InvalidRangeError(f"unterminated sheet name in {address!r}")
        return address[1:close].replace("''", "'"), address[close + 2:]
    sheet, sep, cells = address.rpartition("!")
    if not sep:
        raise InvalidRangeError(f"range has no sheet name: {address!r}")
    return sheet, cells


def _parse_cell(cell: str, address: str) -> tuple[int, int]:
    match = _CELL.match(cell)
    if match is None:
        raise InvalidRangeError(f"invalid cell {cell!r} in {address!r}")
    return int(match.group(2)) - 1, column_index(match.group(1))


@dataclass(frozen=True)
class CellRange:
    """
    A zero-based, end-exclusive rectangle on one sheet.

    Raises:
        InvalidRangeError: any coordinate is negative, or the rectangle is
            empty (``start_row >= end_row`` or ``start_col >= end_col``).
    """

    sheet_name: str
    start_row: int
    start_col: int
    end_row: int
    end_col: int

    def __post_init__(self) -> None:
        coords = (self.start_row, self.start_col, self.end_row, self.end_col)
        if any(c < 0 for c in coords):
            raise InvalidRangeError(f"Invalid cell range (negative coordinate): {self!r}")
        if self.start_row >= self.end_row or self.start_col >= self.end_col:
            raise InvalidRangeError(f"Invalid cell range (empty rectangle): {self!r}")

    @property
    def rows(self) -> int:
        return self.end_row - self.start_row

    @property
    def cols(self) -> int:
        return self.end_col - self.start_col

    def to_a1(self) -> str:
        """One-based inclusive address, e.g. ``Users!A4:C9``."""
        first = f"{column_letter(self.start_col)}{self.start_row + 1}"
        last = f"{column_letter(self.end_col - 1)}{self.end_row}"
        return f"{quote_sheet_name(self.sheet_name)}!{first}:{last}"

    def __str__(self) -> str:
        return self.to_a1()

    @classmethod
    def parse(cls, address: str) -> CellRange:
        """Parse ``Sheet!A1:B2`` or a single cell ``Sheet!A3`` back to a range."""
        sheet, cells = _split_sheet(address)
        first, sep, last = cells.partition(":")
        start_row, start_col = _parse_cell(first, address)
        end_row, end_col = _parse_cell(last, address) if sep else (start_row, start_col)
        return cls(sheet, start_row, start_col, end_row + 1, end_col + 1)


def address_of(sheet_name: str, start_row: int, start_col: int, end_row: int, end_col: int) -> str:
    """Shorthand for ``CellRange(...).to_a1()``."""
    return CellRange(sheet_name, start_row, start_col, end_row, end_col).to_a1()


__all__ = ["CellRange", "address_of", "column_index", "column_letter", "quote_sheet_name"]
