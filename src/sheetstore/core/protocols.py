"""
Canonical protocol definitions for sheetstore.

The row-store engine never talks HTTP itself. It consumes a **Grid Backend**
through the structural protocol defined here; transports (the real grid
service client, the in-memory backend, the throttling wrapper) implement it.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** The engine depends on shape, not on a service SDK
    - **Testability:** The in-memory backend satisfies the same contract
    - **Composability:** ThrottledBackend wraps any backend transparently

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── ContainerRef    one remote spreadsheet (a "database")
        ├── SheetRef        one sheet inside a container (a "table")
        ├── SheetSnapshot   full grid contents of one sheet
        └── GridBackend     container, sheet and range operations

    Range operations take A1-style addresses produced by
    ``sheetstore.engine.addressing``; values are row-major matrices of
    primitive cells. Reads trim trailing empty rows and cells, the way the
    grid service does. Writes and clears return an HTTP-style status code;
    deletes return a bool; reads, listings and creates raise
    ``BackendRejectedError`` when the service refuses them.

Guardrails:
    ❌ DON'T: Build range strings by hand at call sites
    ✅ DO: Use CellRange so every address is validated

    ❌ DON'T: Raise on a non-2xx write status inside a backend
    ✅ DO: Return the status; the engine decides how to surface it

Tags:
    protocol, grid-backend, spreadsheet, contracts, sheetstore
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, Union, runtime_checkable

Cell = Union[bool, int, float, str, None]
Matrix = list[list[Any]]


@dataclass(frozen=True)
class ContainerRef:
    """A remote spreadsheet resource. The handle never owns it."""

    container_id: str
    title: str


@dataclass(frozen=True)
class SheetRef:
    """One sheet inside a container."""

    sheet_id: int
    title: str


@dataclass
class SheetSnapshot:
    """Full grid contents of a sheet at the time it was read."""

    ref: SheetRef
    values: Matrix = field(default_factory=list)


def is_success(status: int) -> bool:
    """True for 2xx status codes."""
    return status // 100 == 2


@runtime_checkable
class GridBackend(Protocol):
    """
    Minimal SYNCHRONOUS grid service interface.

    Every method is one remote request as far as quota accounting is
    concerned.
    """

    def list_containers(self) -> list[ContainerRef]:
        """List every spreadsheet visible to the credentials."""
        ...

    def create_container(self, title: str) -> ContainerRef:
        """Create an empty spreadsheet. May hold default sheets."""
        ...

    def delete_container(self, container_id: str) -> bool:
        """Delete a spreadsheet. True on success."""
        ...

    def list_sheets(self, container_id: str) -> list[SheetRef]:
        """List the sheets of one spreadsheet in display order."""
        ...

    def get_sheet(self, container_id: str, sheet_id: int) -> SheetSnapshot:
        """Read one sheet's full grid contents."""
        ...

    def create_sheet(self, container_id: str, title: str) -> SheetRef:
        """Add a sheet titled ``title``."""
        ...

    def delete_sheet(self, container_id: str, sheet_id: int) -> bool:
        """Delete a sheet. True on success."""
        ...

    def read_range(self, container_id: str, range_address: str) -> Matrix:
        """Read the values inside an A1 range (trailing empties trimmed)."""
        ...

    def write_range(
        self, container_id: str, range_address: str, values: Sequence[Sequence[Any]]
    ) -> int:
        """Overwrite the cells of an A1 range. Returns a status code."""
        ...

    def clear_range(self, container_id: str, range_address: str) -> int:
        """Blank the cells of an A1 range. Returns a status code."""
        ...


__all__ = [
    "Cell",
    "Matrix",
    "ContainerRef",
    "SheetRef",
    "SheetSnapshot",
    "GridBackend",
    "is_success",
]
