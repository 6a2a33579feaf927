"""
In-memory Grid Backend.

A complete, single-process implementation of
:class:`~sheetstore.core.protocols.GridBackend`. It behaves like the remote
grid service where the engine can observe a difference:

- new containers start with one default sheet (``Sheet1``)
- reads trim trailing empty rows and trailing empty cells
- writes larger than their target range are rejected with 400
- unknown containers or sheets are rejected with 404
- values can be rendered back as formatted strings (``"TRUE"``, ``"42"``)

Failures can be injected per method so callers can exercise the engine's
``BackendRejectedError`` paths without a network.

Examples:
    >>> backend = InMemoryGridBackend()
    >>> container = backend.create_container("database_file_demo")
    >>> [s.title for s in backend.list_sheets(container.container_id)]
    ['Sheet1']

Tags:
    backend, in-memory, testing, grid, sheetstore
"""

from __future__ import annotations

import itertools
import threading
import uuid
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sheetstore.core.errors import BackendRejectedError
from sheetstore.core.logging import get_logger
from sheetstore.core.protocols import ContainerRef, Matrix, SheetRef, SheetSnapshot
from sheetstore.engine.addressing import CellRange

logger = get_logger(__name__)

DEFAULT_SHEET_TITLE = "Sheet1"


@dataclass
class _Sheet:
    sheet_id: int
    title: str
    cells: dict[tuple[int, int], Any] = field(default_factory=dict)


@dataclass
class _Container:
    container_id: str
    title: str
    sheets: list[_Sheet] = field(default_factory=list)


def _formatted(value: Any) -> Any:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, int):
        return str(value)
    return value


class InMemoryGridBackend:
    """
    Grid Backend held in process memory.

    Parameters:
        render: ``"typed"`` returns stored Python values from reads;
            ``"formatted"`` returns them the way the grid service formats
            cells (strings for numbers and booleans).
        default_sheet: Title of the sheet every new container starts with.
    """

    def __init__(self, *, render: str = "typed", default_sheet: str | None = DEFAULT_SHEET_TITLE) -> None:
        if render not in ("typed", "formatted"):
            raise ValueError(f"unknown render mode: {render!r}")
        self.render = render
        self.default_sheet = default_sheet
        self.calls: Counter[str] = Counter()
        self._containers: dict[str, _Container] = {}
        self._sheet_ids = itertools.count(1)
        self._failures: dict[str, list[int]] = {}
        self._lock = threading.RLock()

    # -- failure injection ----------------------------------------------------

    def inject_failure(self, method: str, status: int = 500, times: int = 1) -> None:
        """Make the next ``times`` calls to ``method`` fail with ``status``."""
        with self._lock:
            self._failures.setdefault(method, []).extend([status] * times)

    def _take_failure(self, method: str) -> int | None:
        self.calls[method] += 1
        pending = self._failures.get(method)
        if pending:
            return pending.pop(0)
        return None

    def _raise_if_failing(self, method: str) -> None:
        status = self._take_failure(method)
        if status is not None:
            raise BackendRejectedError(f"{method} rejected (injected)", status_code=status)

    # -- lookups --------------------------------------------------------------

    def _container(self, container_id: str) -> _Container:
        try:
            return self._containers[container_id]
        except KeyError:
            raise BackendRejectedError(f"container not found: {container_id}", status_code=404) from None

    def _sheet_by_title(self, container: _Container, title: str) -> _Sheet | None:
        return next((s for s in container.sheets if s.title == title), None)

    def _sheet_by_id(self, container: _Container, sheet_id: int) -> _Sheet | None:
        return next((s for s in container.sheets if s.sheet_id == sheet_id), None)

    def _render(self, value: Any) -> Any:
        if self.render == "formatted":
            return _formatted(value)
        return value

    def _matrix(self, sheet: _Sheet, rng: CellRange) -> Matrix:
        rows: Matrix = []
        for r in range(rng.start_row, rng.end_row):
            row = [sheet.cells.get((r, c)) for c in range(rng.start_col, rng.end_col)]
            while row and row[-1] is None:
                row.pop()
            rows.append(["" if v is None else self._render(v) for v in row])
        while rows and not rows[-1]:
            rows.pop()
        return rows

    # -- containers -----------------------------------------------------------

    def list_containers(self) -> list[ContainerRef]:
        with self._lock:
            self._raise_if_failing("list_containers")
            return [ContainerRef(c.container_id, c.title) for c in self._containers.values()]

    def create_container(self, title: str) -> ContainerRef:
        with self._lock:
            self._raise_if_failing("create_container")
            container = _Container(container_id=uuid.uuid4().hex, title=title)
            if self.default_sheet:
                container.sheets.append(_Sheet(next(self._sheet_ids), self.default_sheet))
            self._containers[container.container_id] = container
            return ContainerRef(container.container_id, title)

    def delete_container(self, container_id: str) -> bool:
        with self._lock:
            status = self._take_failure("delete_container")
            if status is not None:
                return False
            return self._containers.pop(container_id, None) is not None

    # -- sheets ---------------------------------------------------------------

    def list_sheets(self, container_id: str) -> list[SheetRef]:
        with self._lock:
            self._raise_if_failing("list_sheets")
            return [SheetRef(s.sheet_id, s.title) for s in self._container(container_id).sheets]

    def get_sheet(self, container_id: str, sheet_id: int) -> SheetSnapshot:
        with self._lock:
            self._raise_if_failing("get_sheet")
            sheet = self._sheet_by_id(self._container(container_id), sheet_id)
            if sheet is None:
                raise BackendRejectedError(f"sheet not found: {sheet_id}", status_code=404)
            values: Matrix = []
            if sheet.cells:
                end_row = max(r for r, _ in sheet.cells) + 1
                end_col = max(c for _, c in sheet.cells) + 1
                values = self._matrix(sheet, CellRange(sheet.title, 0, 0, end_row, end_col))
            return SheetSnapshot(SheetRef(sheet.sheet_id, sheet.title), values)

    def create_sheet(self, container_id: str, title: str) -> SheetRef:
        with self._lock:
            self._raise_if_failing("create_sheet")
            container = self._container(container_id)
            if self._sheet_by_title(container, title) is not None:
                raise BackendRejectedError(f"sheet already exists: {title}", status_code=400)
            sheet = _Sheet(next(self._sheet_ids), title)
            container.sheets.append(sheet)
            return SheetRef(sheet.sheet_id, sheet.title)

    def delete_sheet(self, container_id: str, sheet_id: int) -> bool:
        with self._lock:
            if self._take_failure("delete_sheet") is not None:
                return False
            container = self._container(container_id)
            sheet = self._sheet_by_id(container, sheet_id)
            if sheet is None:
                return False
            container.sheets.remove(sheet)
            return True

    # -- ranges ---------------------------------------------------------------

    def _resolve(self, container_id: str, range_address: str) -> tuple[_Sheet, CellRange]:
        rng = CellRange.parse(range_address)
        sheet = self._sheet_by_title(self._container(container_id), rng.sheet_name)
        if sheet is None:
            raise BackendRejectedError(f"sheet not found: {rng.sheet_name}", status_code=404)
        return sheet, rng

    def read_range(self, container_id: str, range_address: str) -> Matrix:
        with self._lock:
            self._raise_if_failing("read_range")
            sheet, rng = self._resolve(container_id, range_address)
            return self._matrix(sheet, rng)

    def write_range(self, container_id: str, range_address: str, values: Sequence[Sequence[Any]]) -> int:
        with self._lock:
            status = self._take_failure("write_range")
            if status is not None:
                return status
            try:
                sheet, rng = self._resolve(container_id, range_address)
            except BackendRejectedError as exc:
                return exc.status_code or 400
            if len(values) > rng.rows or any(len(row) > rng.cols for row in values):
                logger.warning("write_exceeds_range", range=range_address)
                return 400
            for i, row in enumerate(values):
                for j, value in enumerate(row):
                    sheet.cells[(rng.start_row + i, rng.start_col + j)] = value
            return 200

    def clear_range(self, container_id: str, range_address: str) -> int:
        with self._lock:
            status = self._take_failure("clear_range")
            if status is not None:
                return status
            try:
                sheet, rng = self._resolve(container_id, range_address)
            except BackendRejectedError as exc:
                return exc.status_code or 400
            for r in range(rng.start_row, rng.end_row):
                for c in range(rng.start_col, rng.end_col):
                    sheet.cells.pop((r, c), None)
            return 200

    # -- test helpers ---------------------------------------------------------

    def cells(self, container_id: str, title: str) -> dict[tuple[int, int], Any]:
        """Raw non-empty cells of a sheet, keyed by ``(row, col)``."""
        with self._lock:
            sheet = self._sheet_by_title(self._container(container_id), title)
            if sheet is None:
                raise KeyError(title)
            return dict(sheet.cells)


__all__ = ["DEFAULT_SHEET_TITLE", "InMemoryGridBackend"]
