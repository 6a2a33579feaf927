"""
Deterministic hashing utilities for row deduplication.

The Uniqueness Index keys rows by a digest of their constrained-column
values. The digest has to be stable across processes and across the
round-trip through the grid backend, so it is computed from a canonical
text form of every value rather than from Python's ``hash()``.

Manifesto:
    - **Deterministic:** Same inputs always produce the same digest
    - **Order-dependent:** (a, b) and (b, a) differ
    - **Canonical text:** bools render as TRUE/FALSE, integral floats keep
      their fraction, so a value read back from the grid digests the same
      as the value that was written
    - **Collision-resistant:** SHA-256, treated as exact equality

Examples:
    >>> compute_hash("a", "b") != compute_hash("b", "a")
    True
    >>> canonical_text(True)
    'TRUE'
    >>> len(compute_hash("x", length=16))
    16

Tags:
    hashing, deduplication, index, sheetstore
"""

import hashlib
from typing import Any

_BOOL_TEXT = {True: "TRUE", False: "FALSE"}


def canonical_text(value: Any) -> str:
    """Render a primitive value the way the digest sees it.

    Booleans are normalised to ``TRUE``/``FALSE`` (the grid service's own
    spelling) so that case or format differences never split a bucket.
    """
    if isinstance(value, bool):
        return _BOOL_TEXT[value]
    if isinstance(value, float):
        return repr(value)
    return str(value)


def compute_hash(*values: Any, length: int = 64) -> str:
    """
    Compute a deterministic SHA-256 hex digest from values.

    Values are rendered with :func:`canonical_text` and joined with ``|``.

    Args:
        *values: Values to hash
        length: Hex digest length (default 64 = full SHA-256)

    Returns:
        Hex string of specified length
    """
    content = "|".join(canonical_text(v) for v in values)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:length]


def compute_key_hash(row: Any, positions: list[int]) -> str:
    """Digest a row's values at ``positions`` in ascending position order.

    Every value is tagged with its column position so that the same value in
    a different constrained column yields a different key.
    """
    ordered = sorted(positions)
    return compute_hash(*(f"{pos}:{canonical_text(row[pos])}" for pos in ordered))


__all__ = ["canonical_text", "compute_hash", "compute_key_hash"]
