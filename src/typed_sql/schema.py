# -*- coding: utf-8 -*-
"""
Schema loading.

    dialect = detect_dialect(source)
    schemas, issues = parse_schema(source, dialect)

The schema source is a plain SQL script (``CREATE TABLE`` / ``DROP TABLE`` /
``ALTER TABLE … ADD``) parsed with sqlglot. Statements are applied in order,
so a ``DROP TABLE IF EXISTS t`` followed by ``CREATE TABLE t`` leaves one
table. Problems are returned as issues located in the source text; the
caller decides whether they are fatal.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from pydantic import BaseModel, Field

from typed_sql.issues import Issue, Span
from typed_sql.types import Dialect, SemanticType, TypeKind

logger = logging.getLogger(__name__)

DIALECT_MARKER = "sql-product: postgres"


class TableColumn(BaseModel):
    name: str
    type: SemanticType
    span: Span = Field(default_factory=Span)

    model_config = {"extra": "forbid", "frozen": True}


class Table(BaseModel):
    name: str
    columns: List[TableColumn] = Field(default_factory=list)
    span: Span = Field(default_factory=Span)

    def column(self, name: str) -> Optional[TableColumn]:
        """Case-insensitive column lookup."""
        lowered = name.lower()
        for c in self.columns:
            if c.name.lower() == lowered:
                return c
        return None

    model_config = {"extra": "forbid", "frozen": True}


class SchemaSet(BaseModel):
    """All tables of a schema, keyed by lower-cased name, in definition order."""

    tables: Dict[str, Table] = Field(default_factory=dict)

    def table(self, name: str) -> Optional[Table]:
        return self.tables.get(name.lower())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self.tables

    def __len__(self) -> int:
        return len(self.tables)

    model_config = {"extra": "forbid", "frozen": True}


# ─── sqlglot type name → semantic kind ────────────────────────────────────────

_TYPE_MAP: Dict[str, TypeKind] = {
    "TINYINT": TypeKind.INT8,
    "UTINYINT": TypeKind.UINT8,
    "SMALLINT": TypeKind.INT16,
    "USMALLINT": TypeKind.UINT16,
    "MEDIUMINT": TypeKind.INT32,
    "UMEDIUMINT": TypeKind.UINT32,
    "INT": TypeKind.INT32,
    "UINT": TypeKind.UINT32,
    "BIGINT": TypeKind.INT64,
    "UBIGINT": TypeKind.UINT64,
    "SMALLSERIAL": TypeKind.INT16,
    "SERIAL": TypeKind.INT32,
    "BIGSERIAL": TypeKind.INT64,
    "FLOAT": TypeKind.FLOAT32,
    "DOUBLE": TypeKind.FLOAT64,
    "DECIMAL": TypeKind.FLOAT,
    "BIGDECIMAL": TypeKind.FLOAT,
    "MONEY": TypeKind.FLOAT,
    "BOOLEAN": TypeKind.BOOL,
    "BIT": TypeKind.BOOL,
    "CHAR": TypeKind.STRING,
    "NCHAR": TypeKind.STRING,
    "VARCHAR": TypeKind.STRING,
    "NVARCHAR": TypeKind.STRING,
    "TEXT": TypeKind.STRING,
    "TINYTEXT": TypeKind.STRING,
    "MEDIUMTEXT": TypeKind.STRING,
    "LONGTEXT": TypeKind.STRING,
    "UUID": TypeKind.STRING,
    "BINARY": TypeKind.BYTES,
    "VARBINARY": TypeKind.BYTES,
    "BLOB": TypeKind.BYTES,
    "TINYBLOB": TypeKind.BYTES,
    "MEDIUMBLOB": TypeKind.BYTES,
    "LONGBLOB": TypeKind.BYTES,
    "DATE": TypeKind.DATE,
    "DATETIME": TypeKind.DATETIME,
    "TIMESTAMP": TypeKind.TIMESTAMP,
    "TIMESTAMPTZ": TypeKind.TIMESTAMP,
    "TIMESTAMPLTZ": TypeKind.TIMESTAMP,
    "TIME": TypeKind.TIME,
    "TIMETZ": TypeKind.TIME,
    "JSON": TypeKind.JSON,
    "JSONB": TypeKind.JSON,
    "ENUM": TypeKind.ENUM,
    "SET": TypeKind.SET,
}

_SERIAL_TYPES = {"SMALLSERIAL", "SERIAL", "BIGSERIAL"}


def detect_dialect(source: str) -> Dialect:
    """PostgreSQL when the first line carries the marker, MariaDB otherwise."""
    first_line = source.split("\n", 1)[0] if source else ""
    if DIALECT_MARKER in first_line:
        return Dialect.POSTGRESQL
    return Dialect.MARIADB


def node_span(node: Optional[exp.Expression], default: Span) -> Span:
    """Smallest span covering every positioned token under ``node``."""
    if node is None:
        return default
    starts: List[int] = []
    ends: List[int] = []
    for sub in node.walk():
        meta = sub.meta
        if "start" in meta and "end" in meta:
            starts.append(meta["start"])
            ends.append(meta["end"])
    if not starts:
        return default
    return Span.of(min(starts), max(ends) + 1)


def parse_error_issues(source: str, exc: Exception, what: str = "SQL") -> List[Issue]:
    """Convert a sqlglot ParseError/TokenError into located issues."""
    details = getattr(exc, "errors", None) or []
    if not details:
        return [Issue.error(f"Invalid {what}: {exc}", Span.of(0, len(source)))]
    issues: List[Issue] = []
    lines = source.split("\n")
    for detail in details:
        line = max(1, int(detail.get("line") or 1))
        col = max(1, int(detail.get("col") or 1))
        offset = sum(len(l) + 1 for l in lines[: line - 1]) + col
        offset = min(offset, len(source))
        highlight = detail.get("highlight") or ""
        start = max(0, offset - len(highlight))
        issues.append(Issue.error(detail.get("description") or str(exc), Span.of(start, offset)))
    return issues


def semantic_type_of(dtype: Optional[exp.DataType], dialect: Dialect) -> Tuple[SemanticType, bool]:
    """
    Semantic type of a column definition's data type (nullable by default).

    Returns:
        (type, known) – ``known`` is False when the type had to fall back to Any.
    """
    if dtype is None:
        return SemanticType(kind=TypeKind.ANY), False
    name = dtype.this.name if isinstance(dtype.this, exp.DataType.Type) else str(dtype.this).upper()
    params = [p.name for p in dtype.expressions]

    if name == "TINYINT" and dialect == Dialect.MARIADB and params == ["1"]:
        return SemanticType(kind=TypeKind.BOOL), True
    kind = _TYPE_MAP.get(name)
    if kind is None:
        return SemanticType(kind=TypeKind.ANY), False
    values: Tuple[str, ...] = tuple(params) if kind in (TypeKind.ENUM, TypeKind.SET) else ()
    nullable = name not in _SERIAL_TYPES
    return SemanticType(kind=kind, nullable=nullable, values=values), True


def parse_schema(source: str, dialect: Optional[Dialect] = None) -> Tuple[SchemaSet, List[Issue]]:
    """
    Parse a schema script into a SchemaSet.

    Args:
        source:  Schema SQL text.
        dialect: SQL product; detected from the first line when omitted.

    Returns:
        (schemas, issues) – schemas contains every table that could be built,
        even when issues were reported.
    """
    dialect = dialect or detect_dialect(source)
    issues: List[Issue] = []
    try:
        statements = sqlglot.parse(source, read=dialect.sqlglot_dialect)
    except (ParseError, TokenError) as exc:
        return SchemaSet(), parse_error_issues(source, exc, "schema")

    tables: Dict[str, Table] = {}
    whole = Span.of(0, len(source))
    for stmt in statements:
        if stmt is None:
            continue
        span = node_span(stmt, whole)
        if isinstance(stmt, exp.Create):
            _apply_create(stmt, tables, issues, dialect, span)
        elif isinstance(stmt, exp.Drop):
            _apply_drop(stmt, tables, issues, span)
        elif isinstance(stmt, exp.Alter):
            _apply_alter(stmt, tables, issues, dialect, span)
        else:
            issues.append(Issue.warning("Statement not supported in schema; ignored", span))

    logger.debug("Parsed schema with %d tables and %d issues", len(tables), len(issues))
    return SchemaSet(tables=tables), issues


# ─── Internal: statements ─────────────────────────────────────────────────────


def _apply_create(
    stmt: exp.Create,
    tables: Dict[str, Table],
    issues: List[Issue],
    dialect: Dialect,
    span: Span,
) -> None:
    kind = str(stmt.args.get("kind") or "").upper()
    if kind != "TABLE":
        issues.append(Issue.warning(f"CREATE {kind or 'statement'} ignored in schema", span))
        return
    schema = stmt.this
    if not isinstance(schema, exp.Schema) or not isinstance(schema.this, exp.Table):
        issues.append(Issue.warning("CREATE TABLE without column definitions ignored", span))
        return

    table_node = schema.this
    name = table_node.name
    table_span = node_span(table_node, span)
    existing = tables.get(name.lower())
    if existing is not None:
        if stmt.args.get("exists"):
            return
        issues.append(
            Issue.error(
                f"Table `{name}` is already defined",
                table_span,
                ("Previously defined here", existing.span),
            )
        )
        return

    not_null: set = set()
    for item in schema.expressions:
        if isinstance(item, exp.PrimaryKey):
            for key in item.expressions:
                target = key.this if isinstance(key, exp.Ordered) else key
                not_null.add(target.name.lower())

    columns: List[TableColumn] = []
    for item in schema.expressions:
        if not isinstance(item, exp.ColumnDef):
            continue
        column = _column_from_def(item, issues, dialect, span)
        if any(c.name.lower() == column.name.lower() for c in columns):
            previous = next(c for c in columns if c.name.lower() == column.name.lower())
            issues.append(
                Issue.error(
                    f"Column `{column.name}` is defined more than once in `{name}`",
                    column.span,
                    ("First definition here", previous.span),
                )
            )
            continue
        columns.append(column)

    if not_null:
        columns = [
            c.model_copy(update={"type": c.type.with_nullable(False)}) if c.name.lower() in not_null else c
            for c in columns
        ]
    tables[name.lower()] = Table(name=name, columns=columns, span=table_span)


def _apply_drop(stmt: exp.Drop, tables: Dict[str, Table], issues: List[Issue], span: Span) -> None:
    kind = str(stmt.args.get("kind") or "").upper()
    # Older sqlglot keeps a single target in ``this``, newer ones a ``tables`` list
    targets = [stmt.this] if isinstance(stmt.this, exp.Table) else list(stmt.args.get("tables") or [])
    if kind != "TABLE" or not targets:
        issues.append(Issue.warning(f"DROP {kind or 'statement'} ignored in schema", span))
        return
    for target in targets:
        name = target.name
        if tables.pop(name.lower(), None) is None and not stmt.args.get("exists"):
            issues.append(Issue.error(f"Unknown table `{name}`", node_span(target, span)))


def _apply_alter(
    stmt: exp.Alter,
    tables: Dict[str, Table],
    issues: List[Issue],
    dialect: Dialect,
    span: Span,
) -> None:
    table_node = stmt.this
    name = table_node.name if isinstance(table_node, exp.Table) else ""
    table = tables.get(name.lower())
    if table is None:
        issues.append(Issue.error(f"Unknown table `{name}`", node_span(table_node, span)))
        return

    columns = list(table.columns)
    for action in stmt.args.get("actions") or []:
        # MODIFY [COLUMN] wraps the new definition
        if not isinstance(action, exp.ColumnDef) and isinstance(action.this, exp.ColumnDef):
            action = action.this
        if isinstance(action, exp.ColumnDef):
            column = _column_from_def(action, issues, dialect, span)
            index = _column_index(columns, column.name)
            if index is None:
                columns.append(column)
            else:
                columns[index] = column
        elif isinstance(action, exp.AlterColumn):
            _alter_column(action, columns, issues, dialect, span, name)
        elif isinstance(action, exp.Drop) and str(action.args.get("kind") or "").upper() == "COLUMN":
            index = _column_index(columns, action.this.name)
            if index is not None:
                del columns[index]
            elif not action.args.get("exists"):
                issues.append(Issue.error(f"Unknown column `{action.this.name}` in `{name}`", node_span(action, span)))
        else:
            issues.append(Issue.warning("ALTER TABLE action not supported in schema; ignored", node_span(action, span)))
    tables[name.lower()] = table.model_copy(update={"columns": columns})


def _column_index(columns: List[TableColumn], name: str) -> Optional[int]:
    for i, existing in enumerate(columns):
        if existing.name.lower() == name.lower():
            return i
    return None


def _alter_column(
    action: exp.AlterColumn,
    columns: List[TableColumn],
    issues: List[Issue],
    dialect: Dialect,
    span: Span,
    table_name: str,
) -> None:
    """``ALTER COLUMN c TYPE t`` / ``SET NOT NULL`` / ``DROP NOT NULL``."""
    index = _column_index(columns, action.this.name)
    if index is None:
        issues.append(Issue.error(f"Unknown column `{action.this.name}` in `{table_name}`", node_span(action, span)))
        return
    column = columns[index]
    type_ = column.type
    dtype = action.args.get("dtype")
    if dtype is not None:
        semantic, known = semantic_type_of(dtype, dialect)
        if not known:
            type_name = dtype.sql(dialect=dialect.sqlglot_dialect)
            issues.append(
                Issue.warning(f"Unknown type {type_name} for `{column.name}`; treated as any", node_span(action, span))
            )
        type_ = semantic.with_nullable(type_.nullable)
    allow_null = action.args.get("allow_null")
    if allow_null is not None:
        type_ = type_.with_nullable(bool(allow_null))
    columns[index] = column.model_copy(update={"type": type_})


def _column_from_def(
    coldef: exp.ColumnDef,
    issues: List[Issue],
    dialect: Dialect,
    span: Span,
) -> TableColumn:
    column_span = node_span(coldef.this, span)
    dtype = coldef.args.get("kind")
    semantic, known = semantic_type_of(dtype, dialect)
    if not known:
        type_name = dtype.sql(dialect=dialect.sqlglot_dialect) if dtype is not None else "(none)"
        issues.append(Issue.warning(f"Unknown type {type_name} for `{coldef.name}`; treated as any", column_span))

    nullable = semantic.nullable
    for constraint in coldef.args.get("constraints") or []:
        kind = constraint.args.get("kind")
        if isinstance(kind, exp.NotNullColumnConstraint):
            nullable = bool(kind.args.get("allow_null"))
        elif isinstance(kind, exp.PrimaryKeyColumnConstraint):
            nullable = False
    return TableColumn(name=coldef.name, type=semantic.with_nullable(nullable), span=column_span)
