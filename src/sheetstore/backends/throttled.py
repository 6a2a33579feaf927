"""
Throttled Grid Backend wrapper.

``ThrottledBackend`` satisfies :class:`~sheetstore.core.protocols.GridBackend`
by delegating to another backend after reserving one unit of quota per
call. Every table and database created by one ``DatabaseManager`` shares
the same wrapper, so they all draw from one budget.

Guardrails:
    ❌ DON'T: Hand the raw backend to tables
    ✅ DO: Route every request through the wrapper so it is counted
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sheetstore.core.protocols import ContainerRef, GridBackend, Matrix, SheetRef, SheetSnapshot
from sheetstore.engine.quota import QuotaThrottle


class ThrottledBackend:
    """Reserve quota, then delegate."""

    def __init__(
        self,
        backend: GridBackend,
        throttle: QuotaThrottle,
        *,
        cost: int = 1,
        blocking: bool | None = None,
    ) -> None:
        self.backend = backend
        self.throttle = throttle
        self.cost = cost
        self.blocking = blocking

    def _reserve(self) -> None:
        self.throttle.reserve(self.cost, blocking=self.blocking)

    def list_containers(self) -> list[ContainerRef]:
        self._reserve()
        return self.backend.list_containers()

    def create_container(self, title: str) -> ContainerRef:
        self._reserve()
        return self.backend.create_container(title)

    def delete_container(self, container_id: str) -> bool:
        self._reserve()
        return self.backend.delete_container(container_id)

    def list_sheets(self, container_id: str) -> list[SheetRef]:
        self._reserve()
        return self.backend.list_sheets(container_id)

    def get_sheet(self, container_id: str, sheet_id: int) -> SheetSnapshot:
        self._reserve()
        return self.backend.get_sheet(container_id, sheet_id)

    def create_sheet(self, container_id: str, title: str) -> SheetRef:
        self._reserve()
        return self.backend.create_sheet(container_id, title)

    def delete_sheet(self, container_id: str, sheet_id: int) -> bool:
        self._reserve()
        return self.backend.delete_sheet(container_id, sheet_id)

    def read_range(self, container_id: str, range_address: str) -> Matrix:
        self._reserve()
        return self.backend.read_range(container_id, range_address)

    def write_range(self, container_id: str, range_address: str, values: Sequence[Sequence[Any]]) -> int:
        self._reserve()
        return self.backend.write_range(container_id, range_address, values)

    def clear_range(self, container_id: str, range_address: str) -> int:
        self._reserve()
        return self.backend.clear_range(container_id, range_address)


__all__ = ["ThrottledBackend"]
