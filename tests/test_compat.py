# -*- coding: utf-8 -*-
"""
Tests for the type compatibility matrix.
"""

import pytest

from helpers import host
from typed_sql.compat import (
    Direction,
    HostRepr,
    HostType,
    accepted_inputs,
    accepts_as_input,
    accepts_as_output,
    fixed_size,
    input_type,
    is_accepted,
    measure,
    output_type,
)
from typed_sql.types import SemanticType, TypeKind


def st(kind, nullable=False):
    return SemanticType(kind=kind, nullable=nullable)


# =============================================================================
# Semantic types
# =============================================================================

class TestSemanticType:
    """Nullability defaults of the two constructors."""

    def test_constructor_is_nullable_by_default(self):
        assert SemanticType(kind=TypeKind.INT32).nullable is True

    def test_of_is_non_null_by_default(self):
        assert SemanticType.of(TypeKind.INT32).nullable is False
        assert SemanticType.of(TypeKind.INT32, nullable=True) == SemanticType(kind=TypeKind.INT32)


# =============================================================================
# Host type rendering
# =============================================================================

class TestHostType:
    """Tests for HostType parsing and rendering."""

    @pytest.mark.parametrize(
        "text",
        ["int32", "Ref[int32]", "Optional[str]", "Optional[Ref[bytes]]", "Ref[Optional[Ref[datetime[utc]]]]"],
    )
    def test_parse_renders_back(self, text):
        """str() gives back the parsed text."""
        assert str(HostType.parse(text)) == text

    def test_parse_flags(self):
        """Ref outside and inside Optional are separate flags."""
        parsed = HostType.parse("Ref[Optional[Ref[int64]]]")
        assert parsed.base == HostRepr.INT64
        assert parsed.ref and parsed.optional and parsed.inner_ref

    def test_unknown_base_rejected(self):
        with pytest.raises(ValueError):
            HostType.parse("int128")


# =============================================================================
# Input direction
# =============================================================================

class TestInput:
    """Tests for accepts_as_input()."""

    def test_exact_width_only(self):
        """No automatic widening between integer widths."""
        assert accepts_as_input(st(TypeKind.INT32), host("int32"))
        assert not accepts_as_input(st(TypeKind.INT32), host("int64"))
        assert not accepts_as_input(st(TypeKind.INT64), host("int32"))
        assert not accepts_as_input(st(TypeKind.FLOAT64), host("float32"))

    def test_integer_family_accepts_every_width(self):
        for base in ("uint8", "int16", "uint32", "int64"):
            assert accepts_as_input(st(TypeKind.INTEGER), host(base))
        assert not accepts_as_input(st(TypeKind.INTEGER), host("float64"))

    def test_float_family(self):
        assert accepts_as_input(st(TypeKind.FLOAT), host("float32"))
        assert accepts_as_input(st(TypeKind.FLOAT), host("float64"))

    def test_borrowed_forms_accepted(self):
        assert accepts_as_input(st(TypeKind.STRING), host("Ref[str]"))

    def test_non_null_rejects_optional(self):
        """A non-null slot never accepts an optional representation."""
        assert not accepts_as_input(st(TypeKind.INT32), host("Optional[int32]"))

    def test_nullable_accepts_all_optional_forms(self):
        nullable = st(TypeKind.INT32, nullable=True)
        for text in (
            "int32",
            "Ref[int32]",
            "Optional[int32]",
            "Optional[Ref[int32]]",
            "Ref[Optional[int32]]",
            "Ref[Optional[Ref[int32]]]",
        ):
            assert accepts_as_input(nullable, host(text)), text
        assert len(accepted_inputs(nullable)) == 6

    def test_bytes_accepts_buffer_types(self):
        for text in ("bytes", "bytearray", "memoryview"):
            assert accepts_as_input(st(TypeKind.BYTES), host(text))

    def test_any_and_json_accept_opaque(self):
        assert accepts_as_input(st(TypeKind.ANY), host("Any"))
        assert accepts_as_input(st(TypeKind.JSON), host("Any"))
        assert not accepts_as_input(st(TypeKind.JSON), host("str"))

    def test_timestamp_accepts_naive_and_utc(self):
        assert accepts_as_input(st(TypeKind.TIMESTAMP), host("datetime"))
        assert accepts_as_input(st(TypeKind.TIMESTAMP), host("datetime[utc]"))

    def test_invalid_accepts_anything(self):
        assert accepts_as_input(SemanticType.invalid(), host("Optional[str]"))


# =============================================================================
# Output direction
# =============================================================================

class TestOutput:
    """Tests for output_type() and accepts_as_output()."""

    def test_nullable_integer_decodes_to_optional(self):
        assert str(output_type(st(TypeKind.INTEGER, nullable=True))) == "Optional[int64]"

    @pytest.mark.parametrize(
        "kind, expected",
        [
            (TypeKind.TIMESTAMP, "datetime[utc]"),
            (TypeKind.ENUM, "str"),
            (TypeKind.SET, "str"),
            (TypeKind.JSON, "str"),
            (TypeKind.INVALID, "int64"),
            (TypeKind.FLOAT, "float64"),
        ],
    )
    def test_canonical_targets(self, kind, expected):
        assert str(output_type(st(kind))) == expected

    def test_non_null_column_into_optional(self):
        assert accepts_as_output(st(TypeKind.INT32), host("Optional[int32]"), 0)
        assert accepts_as_output(st(TypeKind.INT32), host("int32"), 0)

    def test_nullable_column_requires_optional(self):
        assert not accepts_as_output(st(TypeKind.INT32, nullable=True), host("int32"), 0)

    def test_borrowed_never_decoded(self):
        assert not accepts_as_output(st(TypeKind.STRING), host("Ref[str]"), 0)

    def test_negative_index_rejected(self):
        assert not accepts_as_output(st(TypeKind.STRING), host("str"), -1)

    def test_is_accepted_dispatches_on_direction(self):
        semantic = st(TypeKind.INT32, nullable=True)
        assert is_accepted(semantic, host("int32"), Direction.INPUT)
        assert not is_accepted(semantic, host("int32"), Direction.OUTPUT)


# =============================================================================
# Descriptions and sizes
# =============================================================================

class TestDescriptions:
    """Tests for input_type(), fixed_size() and measure()."""

    def test_input_type_names(self):
        assert input_type(st(TypeKind.INT32)) == "int32"
        assert input_type(st(TypeKind.INT32, nullable=True)) == "Optional[int32]"
        assert input_type(st(TypeKind.INTEGER)) == "Integer"

    def test_fixed_sizes(self):
        assert fixed_size(st(TypeKind.INT32)) == 4
        assert fixed_size(st(TypeKind.INTEGER)) == 8
        assert fixed_size(st(TypeKind.STRING)) is None

    def test_measure(self):
        assert measure("héllo") == 6
        assert measure(b"abc") == 3
        assert measure(None) == 0
