"""Tests for sheetstore.engine.constraint module."""

import pytest

from sheetstore.core.errors import ConstraintError, CorruptTableHeaderError
from sheetstore.engine.constraint import Constraint


class TestConstraint:
    """Test constraint construction and mutation."""

    def test_unique_shorthand(self):
        """Constraint.unique sets the unique columns only."""
        constraint = Constraint.unique("Email")
        assert constraint.unique_columns == ("Email",)
        assert constraint.primary_key == ()
        assert not constraint.is_empty

    def test_empty(self):
        """A default constraint applies no uniqueness rule."""
        assert Constraint().is_empty

    def test_repeated_columns_rejected(self):
        """Unique columns must not repeat."""
        with pytest.raises(ConstraintError):
            Constraint.unique("A", "A")

    def test_set_unique_columns_twice_rejected(self):
        """Setting the identical unique list again is an error."""
        constraint = Constraint().set_unique_columns("A", "B")
        with pytest.raises(ConstraintError):
            constraint.set_unique_columns("A", "B")
        assert constraint.set_unique_columns("B").unique_columns == ("B",)

    def test_primary_key(self):
        """Primary key holds one column and can be cleared."""
        constraint = Constraint().set_primary_key("Id", auto_increment=True)
        assert constraint.primary_key == ("Id",)
        assert constraint.auto_increment is True
        assert constraint.set_primary_key(None).primary_key == ()

    def test_validate_against_unknown_column(self):
        """Referencing a column the table lacks fails."""
        with pytest.raises(ConstraintError) as exc_info:
            Constraint.unique("Phone").validate_against(["Email"])
        assert exc_info.value.field == "Phone"


class TestEncoding:
    """Test the header blob encoding."""

    def test_to_json_matches_stored_format(self):
        """Keys are sorted and separators compact."""
        blob = Constraint.unique("Email").to_json()
        assert blob == '{"autoIncrement":false,"primarykey":[],"uniqueColumns":["Email"]}'

    def test_from_json_round_trip(self):
        """Decoding the encoded blob gives an equal constraint."""
        constraint = Constraint(unique_columns=("A", "B"), primary_key=("A",), auto_increment=True)
        assert Constraint.from_json(constraint.to_json()) == constraint

    def test_from_json_accepts_camel_case_primary_key(self):
        """primaryKey is accepted as well as primarykey."""
        decoded = Constraint.from_json('{"uniqueColumns":["A"],"primaryKey":["A"]}')
        assert decoded.primary_key == ("A",)
        assert decoded.auto_increment is False

    def test_from_json_empty(self):
        """Blank blobs mean no constraint."""
        assert Constraint.from_json("") is None
        assert Constraint.from_json("   ") is None

    @pytest.mark.parametrize(
        "blob",
        ["not json", "[1, 2]", '{"uniqueColumns": "Email"}', '{"autoIncrement": "yes"}', '{"uniqueColumns":["A","A"]}'],
    )
    def test_from_json_corrupt(self, blob):
        """Malformed blobs raise CorruptTableHeaderError."""
        with pytest.raises(CorruptTableHeaderError):
            Constraint.from_json(blob)
