# -*- coding: utf-8 -*-
"""
Result row plans.

Public API:
    build_row_plan(columns, target=None, span=...) -> (RowPlan, diagnostics)
    plan_rows(statement, target=None, typed_row=False, span=...)
        -> (RowPlan | None, diagnostics)

A row plan lists, for each result column that ends up in the row shape, the
column's positional index and the representation it is decoded into. With no
target the shape is derived from the column names (an anonymous ``Row``);
with a caller-named target every named column binds to the field of the same
name and is type-checked against the column at that index.
"""

from __future__ import annotations

import keyword
import logging
from collections import namedtuple
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, Field

from typed_sql.compat import HostType, accepts_as_output, output_type
from typed_sql.issues import Diagnostic, ErrorKind, Span
from typed_sql.types import Column, SemanticType, StatementKind, StatementPlan

logger = logging.getLogger(__name__)

ANONYMOUS_ROW = "Row"


class TargetField(BaseModel):
    """A field declared on a caller-named row shape."""

    name: str
    host: HostType
    span: Span = Field(default_factory=Span)

    model_config = {"extra": "forbid", "frozen": True}


class TargetShape(BaseModel):
    """Caller-named row shape, fields in declaration order."""

    name: str
    fields: List[TargetField] = Field(default_factory=list)
    span: Span = Field(default_factory=Span)

    def field(self, name: str) -> Optional[TargetField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    model_config = {"extra": "forbid", "frozen": True}


class DecodeStep(BaseModel):
    """Decode column ``column_index`` into ``field`` as ``target``."""

    column_index: int
    field: Optional[str] = None
    target: HostType
    semantic: SemanticType

    model_config = {"extra": "forbid", "frozen": True}


class RowPlan(BaseModel):
    """Ordered decode steps; ``shape`` is None for the anonymous row."""

    shape: Optional[str] = None
    steps: List[DecodeStep] = Field(default_factory=list)

    @property
    def field_names(self) -> List[str]:
        return [step.field for step in self.steps if step.field is not None]

    def __len__(self) -> int:
        return len(self.steps)

    def row_type(self) -> type:
        """``namedtuple`` type for the anonymous shape."""
        return namedtuple(self.shape or ANONYMOUS_ROW, self.field_names)

    def decoder(self, into: Optional[Callable[..., Any]] = None) -> Callable[[Sequence[Any]], Any]:
        """
        Return a callable turning a fetched row (indexable by column position)
        into the target shape. ``into`` is the caller's type for named shapes;
        the anonymous shape uses ``row_type()``.
        """
        steps = [(step.field, step.column_index) for step in self.steps]
        if into is None:
            row_type = self.row_type()

            def decode_anonymous(row: Sequence[Any]) -> Any:
                return row_type(*(row[index] for _, index in steps))

            return decode_anonymous

        def decode_named(row: Sequence[Any]) -> Any:
            return into(**{name: row[index] for name, index in steps})

        return decode_named

    model_config = {"extra": "forbid", "frozen": True}


def usable_identifier(name: Optional[str]) -> bool:
    """True when ``name`` can address a field of a generated row shape."""
    return bool(name) and name.isidentifier() and not keyword.iskeyword(name)


def build_row_plan(
    columns: Sequence[Column],
    target: Optional[TargetShape] = None,
    span: Optional[Span] = None,
) -> Tuple[RowPlan, List[Diagnostic]]:
    """Build the decode plan for ``columns``; see module docstring."""
    if target is None:
        return _anonymous_plan(columns, span or Span())
    return _named_plan(columns, target)


def plan_rows(
    statement: StatementPlan,
    target: Optional[TargetShape] = None,
    typed_row: bool = False,
    span: Optional[Span] = None,
) -> Tuple[Optional[RowPlan], List[Diagnostic]]:
    """
    Gate row planning on the statement kind.

    ``typed_row`` is True when the caller asked for a typed row (a named
    target shape); statements that cannot produce rows then fail with an
    UNSUPPORTED_CONSTRUCT diagnostic instead of silently returning no plan.
    """
    span = span or Span()
    if statement.is_invalid:
        return None, []

    columns = statement.row_columns()
    if columns is None:
        if not typed_row:
            return None, []
        if statement.kind in (StatementKind.INSERT, StatementKind.REPLACE):
            message = f"{statement.kind.value.upper()} without RETURNING not supported in query_as"
        else:
            message = f"{statement.kind.value.upper()} not supported in query_as"
        return None, [Diagnostic(kind=ErrorKind.UNSUPPORTED_CONSTRUCT, message=message, span=span)]

    return build_row_plan(columns, target, span)


# ─── Internal ─────────────────────────────────────────────────────────────────


def _anonymous_plan(columns: Sequence[Column], span: Span) -> Tuple[RowPlan, List[Diagnostic]]:
    diagnostics: List[Diagnostic] = []
    steps: List[DecodeStep] = []
    seen: Set[str] = set()

    for index, column in enumerate(columns):
        if not usable_identifier(column.name):
            logger.debug("Column %d (%r) has no usable name; left out of the row", index, column.name)
            continue
        if column.name in seen:
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.UNSUPPORTED_CONSTRUCT,
                    message=f"Duplicate column name '{column.name}' at column {index}; alias one of the columns",
                    span=span,
                )
            )
            continue
        seen.add(column.name)
        steps.append(
            DecodeStep(
                column_index=index,
                field=column.name,
                target=output_type(column.type),
                semantic=column.type,
            )
        )

    return RowPlan(shape=None, steps=steps), diagnostics


def _named_plan(columns: Sequence[Column], target: TargetShape) -> Tuple[RowPlan, List[Diagnostic]]:
    diagnostics: List[Diagnostic] = []
    steps: List[DecodeStep] = []
    bound: Dict[str, int] = {}

    for index, column in enumerate(columns):
        if not usable_identifier(column.name):
            continue
        field = target.field(column.name)
        if field is None:
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.TYPE_INCOMPATIBLE,
                    message=f"{target.name} has no field '{column.name}' for column {index}",
                    span=target.span,
                )
            )
            continue
        if field.name in bound:
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.UNSUPPORTED_CONSTRUCT,
                    message=(
                        f"Field '{field.name}' of {target.name} is bound by columns "
                        f"{bound[field.name]} and {index}"
                    ),
                    span=field.span,
                )
            )
            continue
        bound[field.name] = index
        if not accepts_as_output(column.type, field.host, index):
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.TYPE_INCOMPATIBLE,
                    message=(
                        f"Column {index} ({column.type}) cannot be decoded into {field.host}; "
                        f"expected {output_type(column.type)}"
                    ),
                    span=field.span,
                )
            )
        steps.append(
            DecodeStep(
                column_index=index,
                field=field.name,
                target=field.host,
                semantic=column.type,
            )
        )

    for field in target.fields:
        if field.name not in bound:
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.TYPE_INCOMPATIBLE,
                    message=f"Field '{field.name}' of {target.name} has no matching result column",
                    span=field.span,
                )
            )

    return RowPlan(shape=target.name, steps=steps), diagnostics
