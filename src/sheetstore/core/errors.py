"""
Structured error types for sheetstore.

Provides a typed hierarchy of errors carrying the metadata a caller needs to
decide whether to retry, what to report, and which table or range was
involved. Every error raised by the row-store engine extends
``SheetStoreError``.

Manifesto:
    A remote grid has no transactions and no server-side constraints, so the
    engine has to tell its callers precisely what went wrong:
    - **Typed hierarchy:** Duplicate tables, schema mismatches and corrupt
      headers are different failures with different remedies
    - **Explicit retry semantics:** Backend rejections are retryable, schema
      problems never are
    - **Rich context:** Errors carry table, range and HTTP status metadata
    - **Error chaining:** Original exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       SheetStoreError                            │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError         ValidationError        ParseError        │
        │  (retryable=True)       (VALIDATION)           (PARSE)           │
        │       │                      │                      │            │
        │  BackendRejectedError   DuplicateTableError   CorruptTableHeader │
        │  RateLimitError         SchemaMismatchError   CorruptRowError    │
        │   └ QuotaWaitInterrupted ConstraintError                         │
        │                         InvalidTableNameError                    │
        │                         SchemaError                              │
        │                          └ UnsupportedFieldKindError             │
        │                                                                  │
        │  InvalidRangeError      StorageError                             │
        │  (INTERNAL, ValueError) └ TableDroppedError                      │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Backend rejections are retryable:

    >>> error = BackendRejectedError("writeRange failed", status_code=429)
    >>> error.retryable
    True
    >>> error.context.http_status
    429

    Adding context to an error:

    >>> error = SchemaMismatchError("arity mismatch").with_context(table="Users")
    >>> error.context.table
    'Users'

Guardrails:
    ❌ DON'T: Raise plain Exception from engine code
    ✅ DO: Pick the SheetStoreError subclass that names the failure

    ❌ DON'T: Catch InvalidRangeError to keep going
    ✅ DO: Treat it as a bug in the caller's range arithmetic

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    sheetstore
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories are grouped by their typical retry behavior:
    - **Infrastructure (usually transient):** NETWORK, BACKEND, STORAGE
    - **Data errors:** PARSE, VALIDATION
    - **Configuration (never retryable):** CONFIG
    - **Internal errors:** INTERNAL, UNKNOWN

    Examples:
        >>> ErrorCategory.BACKEND.value
        'BACKEND'
    """

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"           # Connection, timeout, quota
    BACKEND = "BACKEND"           # Non-2xx status from the grid service
    STORAGE = "STORAGE"           # Sheet/container lifecycle

    # Data errors
    PARSE = "PARSE"               # Malformed header or cell values
    VALIDATION = "VALIDATION"     # Schema, constraint violations

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"             # Missing config, invalid settings

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover the metadata the row-store engine knows about at the
    point of failure (database, table, range, HTTP status). Anything else
    goes into ``metadata``.

    Examples:
        >>> ctx = ErrorContext(table="Users", range="Users!A4:C6")
        >>> ctx.to_dict()
        {'table': 'Users', 'range': 'Users!A4:C6'}

    Attributes:
        database: Container id or title the operation targeted
        table: Sheet title (table name)
        operation: Engine operation name (select, upsert_if, delete, ...)
        range: A1-style range string involved in the failing call
        http_status: Status code returned by the backend, if any
        metadata: Additional key-value pairs
    """

    database: str | None = None
    table: str | None = None
    operation: str | None = None
    range: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["database", "table", "operation", "range", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SheetStoreError(Exception):
    """
    Base exception for all sheetstore errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    call sites only pass what differs from their domain's defaults.

    Examples:
        >>> error = SheetStoreError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        Chaining errors:

        >>> try:
        ...     raise ConnectionError("DNS lookup failed")
        ... except ConnectionError as e:
        ...     error = SheetStoreError("Network error", cause=e)
        >>> error.cause
        ConnectionError('DNS lookup failed')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SheetStoreError:
        """
        Add context to this error (fluent API).

        Usage:
            raise CorruptTableHeaderError("row 2 missing").with_context(
                table="Users", range="Users!A1:C3"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(SheetStoreError):
    """
    Temporary error that may succeed on retry.

    The engine never retries on its own; the retryable flag is guidance for
    the caller's retry policy.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class BackendRejectedError(TransientError):
    """
    The grid backend answered a write, clear or create call with a non-2xx
    status.

    Over-quota rejections from the service land here too; they are
    retryable after the current quota window rolls over.
    """

    default_category = ErrorCategory.BACKEND

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.context.http_status = status_code


class RateLimitError(TransientError):
    """Rate limit reached; ``retry_after`` holds the seconds until reset."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float = 0,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


class QuotaWaitInterrupted(RateLimitError):
    """A blocking quota wait was cancelled or hit its timeout before the
    window rolled over."""

    pass


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(SheetStoreError):
    """
    Data or definition does not satisfy the table's rules.

    Never retryable: the same input fails the same way.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class SchemaError(ValidationError):
    """Schema definition error."""

    pass


class UnsupportedFieldKindError(SchemaError):
    """A record field's type is not one of the supported primitive kinds."""

    pass


class SchemaMismatchError(ValidationError):
    """A row's arity or per-column kind does not match the table schema.

    ``row_position`` is the offending row's position in the input batch.
    """

    def __init__(self, message: str, *, row_position: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.row_position = row_position


class ConstraintError(ValidationError):
    """Constraint definition violates the schema (e.g. unknown column)."""

    pass


class DuplicateTableError(ValidationError):
    """A sheet with the table's name already exists."""

    def __init__(self, name: str):
        self.table_name = name
        super().__init__(f"Table already exists: {name}", context=ErrorContext(table=name))


class InvalidTableNameError(ValidationError):
    """Table name collides with the backend's default sheet naming."""

    pass


# =============================================================================
# PARSE ERRORS
# =============================================================================


class ParseError(SheetStoreError):
    """Data read from the backend could not be parsed."""

    default_category = ErrorCategory.PARSE
    default_retryable = False


class CorruptTableHeaderError(ParseError):
    """The three header rows of a managed sheet are missing or malformed."""

    pass


class CorruptRowError(ParseError):
    """A data cell cannot be decoded to its column's declared kind."""

    pass


# =============================================================================
# STORAGE / INTERNAL ERRORS
# =============================================================================


class StorageError(SheetStoreError):
    """Sheet or container lifecycle error."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class TableDroppedError(StorageError):
    """The table handle was used after ``drop()``."""

    pass


class InvalidRangeError(SheetStoreError, ValueError):
    """
    Cell range precondition violated (negative or empty rectangle).

    This is a programming error in the caller's range arithmetic rather than
    an environmental condition.
    """

    default_category = ErrorCategory.INTERNAL
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SheetStoreError):
        return error.retryable
    retryable_types = (
        ConnectionError,
        ConnectionResetError,
        ConnectionRefusedError,
        BrokenPipeError,
        OSError,
    )
    return isinstance(error, retryable_types)


def get_retry_after(error: Exception) -> float | None:
    """Get retry delay from error, if specified."""
    if isinstance(error, SheetStoreError):
        return error.retry_after
    return None


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SheetStoreError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SheetStoreError",
    # Transient
    "TransientError",
    "BackendRejectedError",
    "RateLimitError",
    "QuotaWaitInterrupted",
    # Validation
    "ValidationError",
    "SchemaError",
    "UnsupportedFieldKindError",
    "SchemaMismatchError",
    "ConstraintError",
    "DuplicateTableError",
    "InvalidTableNameError",
    # Parse
    "ParseError",
    "CorruptTableHeaderError",
    "CorruptRowError",
    # Storage / internal
    "StorageError",
    "TableDroppedError",
    "InvalidRangeError",
    # Utilities
    "is_retryable",
    "get_retry_after",
    "categorize_error",
]
