# -*- coding: utf-8 -*-
"""
Argument binding planner.

Public API:
    plan_arguments(arguments, expressions, dialect, last_span)
        -> (BindingPlan, diagnostics)

Reconciles the argument slots declared by the query with the expressions
supplied at the call site. Every problem is collected; planning continues
with the remaining valid slots so a single pass reports all of them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from typed_sql.compat import HostType, accepts_as_input, fixed_size, input_type, measure
from typed_sql.issues import Diagnostic, ErrorKind, Span
from typed_sql.types import ArgumentSlot, Dialect, SemanticType

logger = logging.getLogger(__name__)


class CallerExpression(BaseModel):
    """One argument expression as written at the call site."""

    text: str
    span: Span
    host: Optional[HostType] = None

    model_config = {"extra": "forbid", "frozen": True}


class EncodeStep(BaseModel):
    """Encode the value of ``expression`` into argument slot ``slot``."""

    slot: int
    expression: CallerExpression
    is_list: bool = False
    semantic: SemanticType
    required: str

    model_config = {"extra": "forbid", "frozen": True}


class TermOp(str, Enum):
    COUNT = "count"  # weight * len(value)
    SIZE = "size"  # measured size of value
    SUM_SIZE = "sum_size"  # sum of measured sizes of the elements of value


class Term(BaseModel):
    """One value-dependent term of an accumulation formula."""

    slot: int
    op: TermOp
    weight: int = 1

    def evaluate(self, value: Any) -> int:
        if self.op == TermOp.COUNT:
            return self.weight * len(value)
        if self.op == TermOp.SIZE:
            return measure(value)
        return sum(measure(v) for v in value)

    def __str__(self) -> str:
        name = f"arg{self.slot}"
        if self.op == TermOp.COUNT:
            return f"len({name})" if self.weight == 1 else f"{self.weight} * len({name})"
        if self.op == TermOp.SIZE:
            return f"size({name})"
        return f"sum(size(v) for v in {name})"

    model_config = {"extra": "forbid", "frozen": True}


class Accumulation(BaseModel):
    """``constant + sum(terms)``, evaluated once argument values are known."""

    constant: int = 0
    terms: List[Term] = Field(default_factory=list)

    def evaluate(self, values: Sequence[Any]) -> int:
        return self.constant + sum(term.evaluate(values[term.slot]) for term in self.terms)

    def __str__(self) -> str:
        parts = [str(self.constant)] if self.constant or not self.terms else []
        parts.extend(str(t) for t in self.terms)
        return " + ".join(parts)

    model_config = {"extra": "forbid", "frozen": True}


class BindingPlan(BaseModel):
    """Ordered encode steps plus the static count and size formulas."""

    dialect: Dialect = Dialect.MARIADB
    slot_count: int = 0
    steps: List[EncodeStep] = Field(default_factory=list)
    args_count: Accumulation = Field(default_factory=Accumulation)
    size_hint: Accumulation = Field(default_factory=Accumulation)

    @property
    def list_slots(self) -> List[int]:
        return [step.slot for step in self.steps if step.is_list]

    @property
    def has_lists(self) -> bool:
        return any(step.is_list for step in self.steps)

    def list_lengths(self, values: Sequence[Any]) -> List[int]:
        """Runtime lengths of the list arguments, in slot order."""
        return [len(values[slot]) for slot in self.list_slots]

    model_config = {"extra": "forbid", "frozen": True}


def plan_arguments(
    arguments: Sequence[ArgumentSlot],
    expressions: Sequence[CallerExpression],
    dialect: Dialect = Dialect.MARIADB,
    last_span: Optional[Span] = None,
) -> Tuple[BindingPlan, List[Diagnostic]]:
    """
    Build the encode plan for one query.

    Args:
        arguments:   Slots declared by the query (from the type oracle).
        expressions: Expressions supplied at the call site, left to right.
        dialect:     Dialect the plan is built for.
        last_span:   Span of the last thing written at the call site; used for
                     problems that have no expression of their own.

    Returns:
        (plan, diagnostics) – the plan covers every slot that was matched
        with an expression, even when diagnostics were produced.
    """
    diagnostics: List[Diagnostic] = []
    if last_span is None:
        last_span = expressions[-1].span if expressions else Span()

    # ── 1. Dense slot table, named slots rejected ─────────────────────────────
    slots: List[SemanticType] = []
    for argument in arguments:
        if argument.key.is_named:
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.UNSUPPORTED_CONSTRUCT,
                    message="Named arguments not supported",
                    span=last_span,
                )
            )
            continue
        index = argument.key.index
        while len(slots) <= index:
            slots.append(SemanticType.invalid())
        slots[index] = argument.type

    # ── 2. Arity ──────────────────────────────────────────────────────────────
    if len(slots) > len(expressions):
        diagnostics.append(
            Diagnostic(
                kind=ErrorKind.ARITY_MISMATCH,
                message=f"Expected {len(slots) - len(expressions)} additional arguments",
                span=last_span,
            )
        )
    for surplus in expressions[len(slots):]:
        diagnostics.append(
            Diagnostic(
                kind=ErrorKind.ARITY_MISMATCH,
                message="unexpected argument",
                span=surplus.span,
            )
        )

    # ── 3. Encode steps and accumulation formulas ─────────────────────────────
    steps: List[EncodeStep] = []
    count_constant = 0
    size_constant = 0
    count_terms: List[Term] = []
    size_terms: List[Term] = []

    for slot, (semantic, expression) in enumerate(zip(slots, expressions)):
        required = input_type(semantic)
        if expression.host is not None and not accepts_as_input(semantic, expression.host):
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.TYPE_INCOMPATIBLE,
                    message=(
                        f"Argument {slot} has type {expression.host} but the query "
                        f"expects {required} ({semantic})"
                    ),
                    span=expression.span,
                )
            )

        width = fixed_size(semantic)
        if semantic.list_expansion:
            count_terms.append(Term(slot=slot, op=TermOp.COUNT))
            if width is None:
                size_terms.append(Term(slot=slot, op=TermOp.SUM_SIZE))
            else:
                size_terms.append(Term(slot=slot, op=TermOp.COUNT, weight=width))
        else:
            count_constant += 1
            if width is None:
                size_terms.append(Term(slot=slot, op=TermOp.SIZE))
            else:
                size_constant += width

        steps.append(
            EncodeStep(
                slot=slot,
                expression=expression,
                is_list=semantic.list_expansion,
                semantic=semantic,
                required=required,
            )
        )

    plan = BindingPlan(
        dialect=dialect,
        slot_count=len(slots),
        steps=steps,
        args_count=Accumulation(constant=count_constant, terms=count_terms),
        size_hint=Accumulation(constant=size_constant, terms=size_terms),
    )
    logger.debug(
        "Planned %d of %d argument slots (%d diagnostics), args_count = %s",
        len(steps),
        len(slots),
        len(diagnostics),
        plan.args_count,
    )
    return plan, diagnostics
