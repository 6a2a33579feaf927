"""Tests for sheetstore.core.errors module."""

import pytest

from sheetstore.core.errors import (
    BackendRejectedError,
    ConstraintError,
    CorruptTableHeaderError,
    DuplicateTableError,
    ErrorCategory,
    ErrorContext,
    InvalidRangeError,
    QuotaWaitInterrupted,
    RateLimitError,
    SchemaMismatchError,
    SheetStoreError,
    TableDroppedError,
    TransientError,
    ValidationError,
    categorize_error,
    get_retry_after,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        """Create context with no fields set."""
        ctx = ErrorContext()
        assert ctx.table is None
        assert ctx.range is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields plus metadata."""
        ctx = ErrorContext(table="Users", http_status=500, metadata={"attempt": 2})
        d = ctx.to_dict()
        assert d == {"table": "Users", "http_status": 500, "attempt": 2}


class TestSheetStoreError:
    """Test the base error."""

    def test_defaults(self):
        """Base error is INTERNAL and not retryable."""
        error = SheetStoreError("boom")
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert str(error) == "boom"

    def test_cause_is_chained(self):
        """cause is exposed and set as __cause__."""
        original = ConnectionError("reset")
        error = SheetStoreError("network", cause=original)
        assert error.cause is original
        assert error.__cause__ is original

    def test_with_context_sets_known_fields_and_metadata(self):
        """Known keys land on the context; unknown keys go to metadata."""
        error = SheetStoreError("x").with_context(table="Users", row=4)
        assert error.context.table == "Users"
        assert error.context.metadata == {"row": 4}

    def test_to_dict(self):
        """to_dict serializes type, category and context."""
        error = SheetStoreError("x", retry_after=3.0).with_context(table="T")
        d = error.to_dict()
        assert d["error_type"] == "SheetStoreError"
        assert d["retry_after"] == 3.0
        assert d["context"] == {"table": "T"}


class TestTaxonomy:
    """Test retry semantics and categories of the concrete errors."""

    def test_backend_rejected_is_retryable_with_status(self):
        """BackendRejectedError is transient and records the status code."""
        error = BackendRejectedError("write failed", status_code=503)
        assert isinstance(error, TransientError)
        assert error.retryable is True
        assert error.category == ErrorCategory.BACKEND
        assert error.context.http_status == 503

    def test_quota_wait_interrupted_is_rate_limit(self):
        """QuotaWaitInterrupted carries retry_after like any RateLimitError."""
        error = QuotaWaitInterrupted("cancelled", retry_after=12.5)
        assert isinstance(error, RateLimitError)
        assert get_retry_after(error) == 12.5
        assert is_retryable(error)

    def test_duplicate_table_names_the_table(self):
        """DuplicateTableError carries the table name."""
        error = DuplicateTableError("Users")
        assert error.table_name == "Users"
        assert error.context.table == "Users"
        assert not error.retryable

    def test_schema_mismatch_row_position(self):
        """SchemaMismatchError records the offending row position."""
        error = SchemaMismatchError("arity", row_position=3, field="Age", value="x")
        assert isinstance(error, ValidationError)
        assert error.row_position == 3
        assert error.to_dict()["field"] == "Age"

    def test_invalid_range_is_value_error(self):
        """InvalidRangeError is catchable as ValueError."""
        with pytest.raises(ValueError):
            raise InvalidRangeError("empty rectangle")

    def test_categories(self):
        """Parse, storage and validation errors report their categories."""
        assert CorruptTableHeaderError("x").category == ErrorCategory.PARSE
        assert TableDroppedError("x").category == ErrorCategory.STORAGE
        assert ConstraintError("x").category == ErrorCategory.VALIDATION


class TestUtilities:
    """Test module-level helpers."""

    def test_is_retryable_for_stdlib_errors(self):
        """Connection errors are retryable, value errors are not."""
        assert is_retryable(ConnectionResetError())
        assert not is_retryable(ValueError())

    def test_categorize_error(self):
        """Non-sheetstore exceptions map onto categories."""
        assert categorize_error(ConnectionError()) == ErrorCategory.NETWORK
        assert categorize_error(ValueError()) == ErrorCategory.VALIDATION
        assert categorize_error(KeyError()) == ErrorCategory.CONFIG
        assert categorize_error(RuntimeError()) == ErrorCategory.UNKNOWN

    def test_get_retry_after_for_plain_exception(self):
        """Plain exceptions carry no retry delay."""
        assert get_retry_after(RuntimeError()) is None
