# -*- coding: utf-8 -*-
"""
Query compiler.

Usage:
    from typed_sql import QueryCall, compile_query, compile_query_as

    call = QueryCall.from_text("SELECT id, name FROM users WHERE id = ?", args=[...])
    compiled = compile_query(call)
    if not compiled.ok:
        for diagnostic in compiled.diagnostics:
            print(diagnostic)
    sql, params = compiled.bind(42)

Pipeline per query:
    1. oracle classification     -> StatementPlan + issues
    2. issue rendering           -> one QUERY_ISSUE diagnostic at the call site
    3. argument binding plan     -> BindingPlan + diagnostics
    4. row plan (kind-gated)     -> RowPlan | None + diagnostics

A query with errors still compiles into a CompiledQuery: the diagnostics are
kept and every runtime helper refuses to run, raising QueryCompileError.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from typed_sql.binding import BindingPlan, CallerExpression, plan_arguments
from typed_sql.context import SchemaContext, get_schema_context
from typed_sql.diagnostics import issues_to_diagnostics
from typed_sql.issues import Diagnostic, ErrorKind, InternalConsistencyError, QueryCompileError, Span, has_errors
from typed_sql.oracle import Oracle, SqlglotOracle
from typed_sql.rewriter import rewrite
from typed_sql.rows import RowPlan, TargetShape, plan_rows
from typed_sql.types import StatementPlan

logger = logging.getLogger(__name__)


class QueryCall(BaseModel):
    """One call site: query literal fragments, argument expressions, row target."""

    query_parts: List[str]
    query_span: Span
    args: List[CallerExpression] = Field(default_factory=list)
    target: Optional[TargetShape] = None

    @classmethod
    def from_text(
        cls,
        query: str,
        args: Sequence[CallerExpression] = (),
        target: Optional[TargetShape] = None,
    ) -> "QueryCall":
        return cls(query_parts=[query], query_span=Span.of(0, len(query)), args=list(args), target=target)

    @property
    def query(self) -> str:
        return "".join(self.query_parts)

    @property
    def last_span(self) -> Span:
        """Span of the last argument, or of the query when there are none."""
        return self.args[-1].span if self.args else self.query_span

    model_config = {"extra": "forbid", "frozen": True}


class CompiledQuery(BaseModel):
    """
    Result of compiling one call site.

    ``binding`` and ``rows`` are None when the statement could not be
    classified; ``rows`` is also None for statements that return no rows.
    """

    statement: StatementPlan
    query: str
    binding: Optional[BindingPlan] = None
    rows: Optional[RowPlan] = None
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not has_errors(self.diagnostics)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    def check(self) -> None:
        """Raise the build-failing diagnostics, if any."""
        if self.ok:
            return
        report = "\n".join(d.message for d in self.errors)
        raise QueryCompileError(f"Query failed to compile:\n{report}", self.diagnostics)

    def bind(self, *values: Any) -> Tuple[str, List[Any]]:
        """
        Final SQL text and flat parameter list for ``values``.

        List arguments are expanded in place: the query text gets one
        placeholder per element and the elements are spliced into the
        parameters.

        Raises:
            QueryCompileError: The query has errors or ``values`` does not
                match the number of argument slots.
        """
        self.check()
        binding = self._binding()
        if len(values) != binding.slot_count:
            raise QueryCompileError(
                f"Expected {binding.slot_count} arguments, got {len(values)}",
                self.diagnostics,
            )

        list_slots = binding.list_slots
        sql = rewrite(
            self.query,
            binding.list_lengths(values),
            binding.dialect.placeholder_style,
            list_slots=list_slots,
            slot_count=binding.slot_count,
        )
        params: List[Any] = []
        for slot, value in enumerate(values):
            if slot in list_slots:
                params.extend(value)
            else:
                params.append(value)

        expected = binding.args_count.evaluate(values)
        if len(params) != expected:
            raise InternalConsistencyError(f"Bound {len(params)} parameters, plan expects {expected}")
        return sql, params

    def args_count(self, values: Sequence[Any]) -> int:
        """Number of parameters ``values`` expands into."""
        return self._binding().args_count.evaluate(values)

    def size_hint(self, values: Sequence[Any]) -> int:
        """Estimated encoded size of ``values`` in bytes."""
        return self._binding().size_hint.evaluate(values)

    def decoder(self, into: Optional[Callable[..., Any]] = None) -> Callable[[Sequence[Any]], Any]:
        self.check()
        if self.rows is None:
            raise QueryCompileError(f"{self.statement.kind.value.upper()} does not return rows")
        return self.rows.decoder(into)

    def decode(self, row: Sequence[Any], into: Optional[Callable[..., Any]] = None) -> Any:
        """Decode one fetched row into the planned shape."""
        return self.decoder(into)(row)

    def _binding(self) -> BindingPlan:
        self.check()
        if self.binding is None:
            raise QueryCompileError("Query has no binding plan", self.diagnostics)
        return self.binding

    model_config = {"extra": "forbid", "frozen": True}


def compile_query(
    call: QueryCall,
    context: Optional[SchemaContext] = None,
    oracle: Optional[Oracle] = None,
) -> CompiledQuery:
    """
    Compile a call site whose rows (if any) decode into an anonymous row.

    Args:
        call:    The call site.
        context: Schema context; the process-wide default when omitted.
        oracle:  Type oracle; SqlglotOracle when omitted.

    Raises:
        SchemaFatalError: The default schema context could not be built.
    """
    return _compile(call, context, oracle, typed_row=False)


def compile_query_as(
    call: QueryCall,
    context: Optional[SchemaContext] = None,
    oracle: Optional[Oracle] = None,
) -> CompiledQuery:
    """
    Compile a call site whose rows decode into ``call.target``.

    Statements that cannot produce rows are UNSUPPORTED_CONSTRUCT here.
    """
    return _compile(call, context, oracle, typed_row=True)


def _compile(
    call: QueryCall,
    context: Optional[SchemaContext],
    oracle: Optional[Oracle],
    typed_row: bool,
) -> CompiledQuery:
    context = context or get_schema_context()
    oracle = oracle or SqlglotOracle()
    query = call.query

    statement, issues = oracle.classify(context.schemas, query, context.options)
    diagnostics = issues_to_diagnostics(issues, query, call.query_span)

    if statement.is_invalid:
        diagnostics.append(
            Diagnostic(
                kind=ErrorKind.UNSUPPORTED_CONSTRUCT,
                message="Unable to classify the statement; no plan generated",
                span=call.query_span,
            )
        )
        logger.info("Query could not be classified: %r", query)
        return CompiledQuery(statement=statement, query=query, diagnostics=diagnostics)

    binding, argument_diagnostics = plan_arguments(
        statement.arguments,
        call.args,
        context.dialect,
        call.last_span,
    )
    diagnostics.extend(argument_diagnostics)

    target = call.target if typed_row else None
    rows, row_diagnostics = plan_rows(statement, target, typed_row, call.query_span)
    diagnostics.extend(row_diagnostics)

    compiled = CompiledQuery(
        statement=statement,
        query=query,
        binding=binding,
        rows=rows,
        diagnostics=diagnostics,
    )
    logger.debug(
        "Compiled %s with %d slots, %d row steps, %d diagnostics",
        statement.kind.value,
        binding.slot_count,
        len(rows) if rows is not None else 0,
        len(diagnostics),
    )
    return compiled
