# -*- coding: utf-8 -*-
"""
Tests for the argument binding planner.
"""

from helpers import expr
from typed_sql.binding import TermOp, plan_arguments
from typed_sql.issues import ErrorKind, Span
from typed_sql.types import ArgumentSlot, SemanticType, TypeKind


def slots(*kinds, nullable=False):
    return [ArgumentSlot.positional(i, SemanticType(kind=k, nullable=nullable)) for i, k in enumerate(kinds)]


# =============================================================================
# Arity
# =============================================================================

class TestArity:
    """Slot count versus expression count."""

    def test_deficit_reported_once(self):
        """3 slots, 2 expressions: one diagnostic for the missing argument."""
        arguments = slots(TypeKind.INT32, TypeKind.INT32, TypeKind.INT32)
        expressions = [expr("a", 10), expr("b", 13)]

        plan, diagnostics = plan_arguments(arguments, expressions)

        assert len(diagnostics) == 1
        assert diagnostics[0].kind == ErrorKind.ARITY_MISMATCH
        assert diagnostics[0].message == "Expected 1 additional arguments"
        assert diagnostics[0].span == Span.of(13, 14)
        assert len(plan.steps) == 2
        assert plan.slot_count == 3

    def test_surplus_reported_per_expression(self):
        """2 slots, 4 expressions: one diagnostic at each surplus expression."""
        arguments = slots(TypeKind.INT32, TypeKind.INT32)
        expressions = [expr("a", 10), expr("b", 13), expr("c", 16), expr("dd", 19)]

        plan, diagnostics = plan_arguments(arguments, expressions)

        assert [d.message for d in diagnostics] == ["unexpected argument", "unexpected argument"]
        assert [d.span for d in diagnostics] == [Span.of(16, 17), Span.of(19, 21)]
        assert len(plan.steps) == 2

    def test_gaps_are_filled_with_invalid(self):
        """An unreferenced index still occupies its slot."""
        arguments = [ArgumentSlot.positional(2, SemanticType.of(TypeKind.STRING))]
        expressions = [expr("a", 0), expr("b", 3), expr("c", 6)]

        plan, diagnostics = plan_arguments(arguments, expressions)

        assert diagnostics == []
        assert plan.slot_count == 3
        assert [s.semantic.kind for s in plan.steps] == [TypeKind.INVALID, TypeKind.INVALID, TypeKind.STRING]

    def test_last_span_defaults_to_last_expression(self):
        arguments = slots(TypeKind.INT32, TypeKind.INT32)
        _, diagnostics = plan_arguments(arguments, [expr("x", 40)])
        assert diagnostics[0].span == Span.of(40, 41)


# =============================================================================
# Unsupported and incompatible arguments
# =============================================================================

class TestArgumentChecks:
    """Named slots and type mismatches."""

    def test_named_argument_unsupported(self):
        arguments = [ArgumentSlot.named("user", SemanticType.of(TypeKind.INT32))]
        last = Span.of(5, 9)

        _, diagnostics = plan_arguments(arguments, [], last_span=last)

        assert len(diagnostics) == 1
        assert diagnostics[0].kind == ErrorKind.UNSUPPORTED_CONSTRUCT
        assert diagnostics[0].message == "Named arguments not supported"
        assert diagnostics[0].span == last

    def test_optional_into_non_null_slot(self):
        """A non-null slot rejects an optional representation."""
        arguments = slots(TypeKind.INT64)
        expressions = [expr("maybe_id", 20, host="Optional[int64]")]

        _, diagnostics = plan_arguments(arguments, expressions)

        assert len(diagnostics) == 1
        assert diagnostics[0].kind == ErrorKind.TYPE_INCOMPATIBLE
        assert diagnostics[0].span == Span.of(20, 28)
        assert "int64" in diagnostics[0].message

    def test_matching_types_pass(self):
        arguments = slots(TypeKind.STRING, TypeKind.INT32, nullable=True)
        expressions = [expr("name", 0, host="Ref[str]"), expr("age", 6, host="Optional[int32]")]

        _, diagnostics = plan_arguments(arguments, expressions)

        assert diagnostics == []

    def test_unknown_host_not_checked(self):
        _, diagnostics = plan_arguments(slots(TypeKind.DATE), [expr("when", 0)])
        assert diagnostics == []


# =============================================================================
# Count and size formulas
# =============================================================================

class TestAccumulation:
    """Static formulas evaluated against runtime values."""

    def test_scalar_count_is_constant(self):
        plan, _ = plan_arguments(slots(TypeKind.INT32, TypeKind.STRING), [expr("a", 0), expr("b", 3)])

        assert plan.args_count.constant == 2
        assert plan.args_count.terms == []
        assert plan.args_count.evaluate([1, "x"]) == 2

    def test_list_slot_counts_its_length(self):
        list_int = SemanticType.of(TypeKind.INT32, list_expansion=True)
        arguments = [ArgumentSlot.positional(0, SemanticType.of(TypeKind.STRING)), ArgumentSlot.positional(1, list_int)]

        plan, _ = plan_arguments(arguments, [expr("name", 0), expr("ids", 6)])

        assert plan.list_slots == [1]
        assert plan.args_count.evaluate(["bob", [1, 2, 3]]) == 4
        assert plan.args_count.evaluate(["bob", []]) == 1
        assert plan.list_lengths(["bob", [1, 2]]) == [2]

    def test_size_hint(self):
        list_int = SemanticType.of(TypeKind.INT32, list_expansion=True)
        arguments = [
            ArgumentSlot.positional(0, SemanticType.of(TypeKind.INT64)),
            ArgumentSlot.positional(1, SemanticType.of(TypeKind.STRING)),
            ArgumentSlot.positional(2, list_int),
        ]

        plan, _ = plan_arguments(arguments, [expr("a", 0), expr("b", 3), expr("c", 6)])

        assert plan.size_hint.constant == 8
        assert [t.op for t in plan.size_hint.terms] == [TermOp.SIZE, TermOp.COUNT]
        assert plan.size_hint.evaluate([7, "abc", [1, 2]]) == 8 + 3 + 2 * 4

    def test_formula_rendering(self):
        list_str = SemanticType.of(TypeKind.STRING, list_expansion=True)
        plan, _ = plan_arguments([ArgumentSlot.positional(0, list_str)], [expr("names", 0)])

        assert str(plan.args_count) == "len(arg0)"
        assert str(plan.size_hint) == "sum(size(v) for v in arg0)"
