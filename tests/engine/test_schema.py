"""Tests for sheetstore.engine.schema module."""

from dataclasses import dataclass
from typing import Annotated, Optional

import pytest
from pydantic import BaseModel

from sheetstore.core.errors import (
    ConstraintError,
    CorruptRowError,
    CorruptTableHeaderError,
    SchemaMismatchError,
    UnsupportedFieldKindError,
)
from sheetstore.engine.constraint import Constraint
from sheetstore.engine.schema import (
    ColumnKind,
    Schema,
    conform_value,
    decode_cell,
    flatten_record,
    record_fields,
)


@dataclass
class Member:
    Active: bool
    Age: Annotated[int, ColumnKind.INT32]
    Email: str


class Product(BaseModel):
    Sku: str
    Price: float
    Stock: Annotated[int, ColumnKind.UINT16]


@dataclass
class WithOptional:
    Name: Optional[str]


@dataclass
class Listing:
    Email: str
    Age: int
    Active: bool


class TestColumnKind:
    """Test the kind vocabulary."""

    def test_tags_are_values(self):
        """Enum values are the stored tags."""
        assert ColumnKind("int32") is ColumnKind.INT32
        assert ColumnKind.STRING.value == "string"

    def test_classification(self):
        """Integer, float and numeric properties."""
        assert ColumnKind.UINT8.is_integer
        assert ColumnKind.FLOAT32.is_float
        assert not ColumnKind.BOOL.is_numeric
        assert ColumnKind.INT8.bounds == (-128, 127)

    def test_unknown_tag(self):
        """Unknown tags read from a header are corrupt."""
        with pytest.raises(CorruptTableHeaderError):
            ColumnKind.from_tag("complex128")


class TestConformValue:
    """Test conforming caller values."""

    def test_accepts_matching_kinds(self):
        """Matching values pass through; ints widen to floats."""
        assert conform_value(ColumnKind.BOOL, True) is True
        assert conform_value(ColumnKind.INT32, 7) == 7
        assert conform_value(ColumnKind.FLOAT64, 2) == 2.0
        assert conform_value(ColumnKind.STRING, "x") == "x"

    @pytest.mark.parametrize(
        "kind,value",
        [
            (ColumnKind.INT32, True),
            (ColumnKind.INT32, "7"),
            (ColumnKind.INT8, 128),
            (ColumnKind.UINT8, -1),
            (ColumnKind.BOOL, 1),
            (ColumnKind.STRING, 1),
            (ColumnKind.FLOAT64, False),
        ],
    )
    def test_rejects_mismatches(self, kind, value):
        """Wrong types and out-of-range integers fail."""
        with pytest.raises(SchemaMismatchError):
            conform_value(kind, value)


class TestDecodeCell:
    """Test decoding cells read from the backend."""

    def test_formatted_strings(self):
        """Formatted strings decode to their kinds."""
        assert decode_cell(ColumnKind.BOOL, "TRUE") is True
        assert decode_cell(ColumnKind.BOOL, "false") is False
        assert decode_cell(ColumnKind.INT64, "42") == 42
        assert decode_cell(ColumnKind.FLOAT64, "1.5") == 1.5
        assert decode_cell(ColumnKind.STRING, 12) == "12"

    def test_typed_values(self):
        """Typed values pass through."""
        assert decode_cell(ColumnKind.BOOL, False) is False
        assert decode_cell(ColumnKind.INT32, 3.0) == 3

    def test_empty_string_cell(self):
        """An empty string column reads back as an empty string."""
        assert decode_cell(ColumnKind.STRING, None) == ""

    @pytest.mark.parametrize(
        "kind,raw",
        [(ColumnKind.INT32, ""), (ColumnKind.BOOL, "yes"), (ColumnKind.INT32, "1.5"), (ColumnKind.FLOAT64, "abc")],
    )
    def test_corrupt(self, kind, raw):
        """Undecodable cells raise CorruptRowError."""
        with pytest.raises(CorruptRowError):
            decode_cell(kind, raw)


class TestRecordIntrospection:
    """Test schema derivation from record types."""

    def test_dataclass_fields(self):
        """Dataclass fields map in declaration order."""
        assert record_fields(Member) == [
            ("Active", ColumnKind.BOOL),
            ("Age", ColumnKind.INT32),
            ("Email", ColumnKind.STRING),
        ]

    def test_pydantic_fields(self):
        """Pydantic fields map, including Annotated widths."""
        assert record_fields(Product) == [
            ("Sku", ColumnKind.STRING),
            ("Price", ColumnKind.FLOAT64),
            ("Stock", ColumnKind.UINT16),
        ]

    def test_unsupported_field(self):
        """Non-primitive annotations are rejected."""
        with pytest.raises(UnsupportedFieldKindError) as exc_info:
            record_fields(WithOptional)
        assert exc_info.value.field == "Name"

    def test_not_a_record(self):
        """Plain classes are rejected."""
        with pytest.raises(UnsupportedFieldKindError):
            record_fields(int)

    def test_flatten_inputs(self):
        """Records, mappings and sequences flatten to value lists."""
        columns = ("Active", "Age", "Email")
        assert flatten_record(Member(True, 3, "a"), columns) == [True, 3, "a"]
        assert flatten_record({"Email": "a", "Active": True, "Age": 3}, columns) == [True, 3, "a"]
        assert flatten_record((True, 3, "a"), columns) == [True, 3, "a"]
        assert flatten_record(Product(Sku="s", Price=1.0, Stock=2), ("Sku", "Price", "Stock")) == ["s", 1.0, 2]

    def test_flatten_mapping_missing_column(self):
        """A mapping lacking a column is a mismatch."""
        with pytest.raises(SchemaMismatchError):
            flatten_record({"Active": True}, ("Active", "Age"))

    def test_flatten_mapping_unknown_key(self):
        """Keys that are not columns are a mismatch, not silently dropped."""
        with pytest.raises(SchemaMismatchError):
            flatten_record({"Active": True, "Age": 3, "Email": "a", "Bogus": 9}, ("Active", "Age", "Email"))

    def test_flatten_record_maps_fields_by_column_name(self):
        """Field declaration order does not decide column placement."""
        columns = ("Active", "Age", "Email")
        assert flatten_record(Listing(Email="a", Age=3, Active=True), columns) == [True, 3, "a"]

    def test_flatten_record_missing_field(self):
        with pytest.raises(SchemaMismatchError):
            flatten_record(Member(True, 3, "a"), ("Active", "Age", "Email", "Handle"))


class TestSchema:
    """Test Schema construction, rows and header encoding."""

    def test_from_record(self):
        """Name defaults to the class name."""
        schema = Schema.from_record(Member, Constraint.unique("Email"))
        assert schema.name == "Member"
        assert schema.width == 3
        assert schema.unique_positions() == [2]

    def test_build(self):
        """The declarative builder accepts kinds or tags."""
        schema = Schema.build("T", [("A", "bool"), ("B", ColumnKind.INT8)])
        assert schema.types == (ColumnKind.BOOL, ColumnKind.INT8)

    def test_constraint_must_reference_columns(self):
        """Unknown constraint columns are rejected."""
        with pytest.raises(ConstraintError):
            Schema.from_record(Member, Constraint.unique("Phone"))

    def test_position(self):
        """Columns resolve by name or index."""
        schema = Schema.from_record(Member)
        assert schema.position("Email") == 2
        assert schema.position(1) == 1
        with pytest.raises(SchemaMismatchError):
            schema.position("Phone")
        with pytest.raises(SchemaMismatchError):
            schema.position(3)

    def test_conform_row_arity(self):
        """Wrong arity fails with the row position recorded."""
        schema = Schema.from_record(Member)
        with pytest.raises(SchemaMismatchError) as exc_info:
            schema.conform_row((True, 1), position=4)
        assert exc_info.value.row_position == 4
        assert exc_info.value.context.table == "Member"

    def test_conform_row_names_the_column(self):
        """A kind mismatch names the offending column."""
        schema = Schema.from_record(Member)
        with pytest.raises(SchemaMismatchError) as exc_info:
            schema.conform_row((True, "old", "a@x"))
        assert exc_info.value.field == "Age"

    def test_decode_row_pads_short_rows(self):
        """Trimmed trailing string cells read back as empty strings."""
        schema = Schema.from_record(Member)
        assert schema.decode_row(["TRUE", "3"]) == (True, 3, "")

    def test_header_rows(self):
        """Header rows follow the stored layout."""
        schema = Schema.from_record(Member, Constraint.unique("Email"))
        assert schema.header_rows() == [
            ["Active", "Age", "Email"],
            ["bool", "int32", "string"],
            ["0", 3, '{"autoIncrement":false,"primarykey":[],"uniqueColumns":["Email"]}'],
        ]

    def test_header_without_constraint(self):
        """Row 2 has two cells when there is no constraint."""
        assert Schema.from_record(Member).header_rows()[2] == ["0", 3]

    def test_from_header_round_trip(self):
        """Parsing encoded header rows gives the schema back."""
        schema = Schema.from_record(Member, Constraint.unique("Email"))
        schema.row_count = 7
        parsed = Schema.from_header("Member", schema.header_rows())
        assert parsed == schema
        assert parsed.row_count == 7

    def test_from_header_formatted_counts(self):
        """Column count may come back as a string or float."""
        rows = [["A"], ["string"], ["2", "1"]]
        assert Schema.from_header("T", rows).row_count == 2
        rows = [["A"], ["string"], ["2", 1.0]]
        assert Schema.from_header("T", rows).width == 1

    @pytest.mark.parametrize(
        "rows",
        [
            [],
            [["A"], ["string"]],
            [["A"], ["string"], ["x", 1]],
            [["A"], ["string"], ["1"]],
            [["A"], ["string"], ["1", 2]],
            [["A"], ["nope"], ["1", 1]],
            [["A"], ["string"], ["-1", 1]],
            [["A"], ["string"], ["1", 0]],
            [["A"], ["string"], ["1", 1, "{bad"]],
            [["A"], ["string"], ["1", 1, '{"uniqueColumns":["B"]}']],
            [["A", "A"], ["string", "string"], ["1", 2]],
        ],
    )
    def test_from_header_corrupt(self, rows):
        """Malformed headers raise CorruptTableHeaderError with the table name."""
        with pytest.raises(CorruptTableHeaderError) as exc_info:
            Schema.from_header("T", rows)
        assert exc_info.value.context.table == "T"

    def test_describe(self):
        """describe summarises the schema."""
        summary = Schema.from_record(Member, Constraint.unique("Email")).describe()
        assert summary == {
            "name": "Member",
            "rows": 0,
            "columns": ["Active", "Age", "Email"],
            "types": ["bool", "int32", "string"],
            "unique_columns": ["Email"],
        }
