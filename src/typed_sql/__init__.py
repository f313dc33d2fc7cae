# -*- coding: utf-8 -*-
"""
typed_sql: schema-checked query compilation.

Public API
----------
Main entry points::

    from typed_sql import QueryCall, compile_query, compile_query_as
    compiled = compile_query(QueryCall.from_text("SELECT id FROM users WHERE name = ?", args))
    compiled.check()                         # raises QueryCompileError on errors
    sql, params = compiled.bind("alice")

Schema::

    from typed_sql import SchemaContext, get_schema_context, load_schema_context
    context = SchemaContext.from_source(open("typed-sql-schema.sql").read())

Planning building blocks::

    from typed_sql import plan_arguments, plan_rows, rewrite, is_accepted

Logging and configuration::

    from typed_sql import setup_logger
    setup_logger()                           # rich console handler; level from TYPED_SQL_LOG_LEVEL
    setup_logger(log_file=Path("logs/typed_sql.log"))

Settings (TYPED_SQL_SCHEMA, TYPED_SQL_LOG_LEVEL, TYPED_SQL_COLOR) are read from
the environment and from a .env file; see typed_sql.config.

Errors::

    from typed_sql import ErrorKind, Diagnostic, SchemaFatalError, QueryCompileError
"""

from typed_sql.binding import BindingPlan, CallerExpression, EncodeStep, plan_arguments
from typed_sql.compat import Direction, HostRepr, HostType, accepts_as_input, accepts_as_output, is_accepted
from typed_sql.compiler import CompiledQuery, QueryCall, compile_query, compile_query_as
from typed_sql.context import SchemaContext, get_schema_context, load_schema_context
from typed_sql.diagnostics import present
from typed_sql.logger_config import get_logger, setup_logger
from typed_sql.issues import (
    Diagnostic,
    ErrorKind,
    InternalConsistencyError,
    Issue,
    Level,
    QueryCompileError,
    SchemaFatalError,
    Span,
    TypedSqlError,
)
from typed_sql.oracle import Oracle, SqlglotOracle
from typed_sql.rewriter import LIST_SENTINEL, rewrite, scan_placeholders
from typed_sql.rows import DecodeStep, RowPlan, TargetField, TargetShape, build_row_plan, plan_rows
from typed_sql.schema import SchemaSet, parse_schema
from typed_sql.types import (
    ArgumentSlot,
    Column,
    Dialect,
    PlaceholderStyle,
    SemanticType,
    StatementKind,
    StatementPlan,
    TypeKind,
    TypeOptions,
)

__all__ = [
    # ── Main entry points ─────────────────────────────────────────────────
    "QueryCall",
    "CompiledQuery",
    "compile_query",
    "compile_query_as",
    # ── Schema ────────────────────────────────────────────────────────────
    "SchemaContext",
    "SchemaSet",
    "get_schema_context",
    "load_schema_context",
    "parse_schema",
    "Oracle",
    "SqlglotOracle",
    # ── Types ─────────────────────────────────────────────────────────────
    "TypeKind",
    "SemanticType",
    "ArgumentSlot",
    "Column",
    "Dialect",
    "PlaceholderStyle",
    "StatementKind",
    "StatementPlan",
    "TypeOptions",
    "HostRepr",
    "HostType",
    "Direction",
    # ── Planning ──────────────────────────────────────────────────────────
    "CallerExpression",
    "EncodeStep",
    "BindingPlan",
    "plan_arguments",
    "TargetField",
    "TargetShape",
    "DecodeStep",
    "RowPlan",
    "build_row_plan",
    "plan_rows",
    "LIST_SENTINEL",
    "rewrite",
    "scan_placeholders",
    "accepts_as_input",
    "accepts_as_output",
    "is_accepted",
    # ── Diagnostics and errors ────────────────────────────────────────────
    "present",
    "Level",
    "Span",
    "Issue",
    "Diagnostic",
    "ErrorKind",
    "TypedSqlError",
    "SchemaFatalError",
    "InternalConsistencyError",
    "QueryCompileError",
    # ── Logging ───────────────────────────────────────────────────────────
    "setup_logger",
    "get_logger",
]
