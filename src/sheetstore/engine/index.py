"""
Uniqueness index over a table's constrained columns.

The grid has no server-side constraints, so uniqueness is enforced on the
client: before an insert the engine re-reads every row, digests each row's
values on the unique columns, and refuses inputs whose digest is already
present.

Manifesto:
    - **Derived, not authoritative:** the grid is the truth; the index is
      rebuilt from the full row set after every read
    - **Rebuilt, never patched:** inserts and deletes shift positions, and
      the backend offers no change notification
    - **Digest equality:** SHA-256 of the canonical values stands in for
      exact multi-column comparison
    - **Inert without a constraint:** ``contains`` always reports False

Examples:
    >>> index = UniqueIndex([2])
    >>> index.build([(True, 1, "a"), (False, 2, "b")])
    >>> index.contains((True, 9, "a"))
    (True, [0])
    >>> UniqueIndex([]).contains((True, 9, "a"))
    (False, [])

Tags:
    index, uniqueness, deduplication, hashing, sheetstore
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from sheetstore.core.hashing import compute_key_hash


class UniqueIndex:
    """Digest-keyed buckets of row positions."""

    def __init__(self, positions: Iterable[int] = ()) -> None:
        self.positions: list[int] = sorted(positions)
        self._buckets: dict[str, list[int]] = {}

    @property
    def active(self) -> bool:
        return bool(self.positions)

    def __len__(self) -> int:
        return len(self._buckets)

    def key_of(self, row: Sequence[Any]) -> str:
        """Digest of ``row`` on the indexed positions."""
        return compute_key_hash(row, self.positions)

    def build(self, rows: Iterable[Sequence[Any]]) -> None:
        """Replace the index contents with the buckets of ``rows``."""
        buckets: dict[str, list[int]] = defaultdict(list)
        if self.active:
            for i, row in enumerate(rows):
                buckets[self.key_of(row)].append(i)
        self._buckets = dict(buckets)

    def contains(self, row: Sequence[Any]) -> tuple[bool, list[int]]:
        """Whether a row with the same unique-column values is indexed, and
        the positions of the rows that share its digest."""
        if not self.active:
            return False, []
        bucket = self._buckets.get(self.key_of(row))
        if bucket is None:
            return False, []
        return True, list(bucket)

    def add(self, row: Sequence[Any], position: int) -> None:
        """Record a row accepted within the current batch.

        Used only to dedup rows against each other before they are written;
        the index is rebuilt from the grid afterwards.
        """
        if self.active:
            self._buckets.setdefault(self.key_of(row), []).append(position)

    def duplicates(self) -> dict[str, list[int]]:
        """Buckets holding more than one row position."""
        return {k: list(v) for k, v in self._buckets.items() if len(v) > 1}


__all__ = ["UniqueIndex"]
