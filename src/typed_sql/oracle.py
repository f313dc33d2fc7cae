# -*- coding: utf-8 -*-
"""
Schema type oracle.

The compiler asks an oracle to classify a query against the loaded schema:

    plan, issues = oracle.classify(schemas, query, options)

``SqlglotOracle`` is the bundled implementation. It parses the query with
sqlglot and infers:

  - the statement kind (SELECT / INSERT / REPLACE / UPDATE / DELETE)
  - the type of every argument slot, from the context it appears in
  - the name and type of every result column (select list or RETURNING)

Placeholders (``?``, ``$n`` and the ``__LIST__`` sentinel) are swapped for
marker identifiers before parsing, so every dialect parses them the same way
and each one keeps its location in the original text. Problems are reported
as located issues; classification carries on after an error so one pass
reports everything it can.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from typed_sql.issues import Issue, Span
from typed_sql.rewriter import scan_placeholders
from typed_sql.schema import SchemaSet, Table, TableColumn, node_span, parse_error_issues, semantic_type_of
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

logger = logging.getLogger(__name__)


class Oracle(Protocol):
    """Anything that can classify a query against a schema."""

    def classify(
        self,
        schemas: SchemaSet,
        query: str,
        options: TypeOptions,
    ) -> Tuple[StatementPlan, List[Issue]]: ...


class SqlglotOracle:
    """Type oracle backed by the sqlglot parser."""

    def classify(
        self,
        schemas: SchemaSet,
        query: str,
        options: TypeOptions,
    ) -> Tuple[StatementPlan, List[Issue]]:
        """
        Classify ``query``.

        Returns:
            (plan, issues) – ``plan`` is ``StatementPlan.invalid()`` when the
            query could not be parsed or is not a supported statement.
        """
        plan, issues = _Classifier(schemas, query, options).run()
        logger.debug(
            "Classified %s: %d arguments, %d issues",
            plan.kind.value,
            len(plan.arguments),
            len(issues),
        )
        return plan, issues


# ─── Placeholder scanning ─────────────────────────────────────────────────────

_REPLACE_PATTERN = re.compile(r"\s*(REPLACE)\b", re.IGNORECASE)

_MARKER_PREFIX = "__typed_sql_arg"


@dataclass
class _Marker:
    """One placeholder occurrence in the query text."""

    name: str
    span: Span
    is_list: bool = False
    slot: int = -1


@dataclass
class _Source:
    """A table reachable from a scope, under ``alias``."""

    alias: str
    table: Optional[Table]  # None: unknown table, already reported
    span: Span
    nullable: bool = False

    def columns(self) -> List[Column]:
        if self.table is None:
            return []
        return [
            Column(name=c.name, type=c.type.with_nullable(True) if self.nullable else c.type)
            for c in self.table.columns
        ]


@dataclass
class _Scope:
    sources: List[_Source] = field(default_factory=list)
    parent: Optional["_Scope"] = None
    ctes: Dict[str, Table] = field(default_factory=dict)

    def find(self, alias: str) -> Optional[_Source]:
        lowered = alias.lower()
        scope: Optional[_Scope] = self
        while scope is not None:
            for source in scope.sources:
                if source.alias.lower() == lowered:
                    return source
            scope = scope.parent
        return None

    def cte(self, name: str) -> Optional[Table]:
        scope: Optional[_Scope] = self
        while scope is not None:
            table = scope.ctes.get(name.lower())
            if table is not None:
                return table
            scope = scope.parent
        return None


_ANY = SemanticType(kind=TypeKind.ANY)
_INVALID = SemanticType.invalid()
_BOOL = SemanticType.of(TypeKind.BOOL)
_STRING = SemanticType.of(TypeKind.STRING)

_COMPARISONS = (exp.EQ, exp.NEQ, exp.GT, exp.GTE, exp.LT, exp.LTE, exp.NullSafeEQ)
_ARITHMETIC = (exp.Add, exp.Sub, exp.Mul, exp.Div, exp.Mod, exp.IntDiv)
_SET_OPERATIONS = (exp.Union, exp.Intersect, exp.Except)


def _arg(node: exp.Expression, *keys: str) -> Optional[exp.Expression]:
    """First present argument among ``keys`` (sqlglot renamed some of them)."""
    for key in keys:
        value = node.args.get(key)
        if value is not None:
            return value
    return None


class _Classifier:
    """Single-use state for classifying one query."""

    def __init__(self, schemas: SchemaSet, query: str, options: TypeOptions) -> None:
        self.schemas = schemas
        self.query = query
        self.options = options
        self.issues: List[Issue] = []
        self.markers: Dict[str, _Marker] = {}
        self.arg_types: Dict[int, SemanticType] = {}
        self.is_replace = False
        # (text_start, text_end, query_start, query_end) per substitution
        self._edits: List[Tuple[int, int, int, int]] = []
        self.text = self._substitute()
        self._whole = Span.of(0, len(self.text))

    # ── Entry point ───────────────────────────────────────────────────────────

    def run(self) -> Tuple[StatementPlan, List[Issue]]:
        dialect = self.options.dialect
        try:
            statements = sqlglot.parse(self.text, read=dialect.sqlglot_dialect)
        except (ParseError, TokenError) as exc:
            for issue in parse_error_issues(self.text, exc, "query"):
                self.issues.append(issue.model_copy(update={"span": self._translate(issue.span)}))
            return StatementPlan.invalid(), self.issues

        statements = [s for s in statements if s is not None]
        if len(statements) != 1:
            self.issues.append(Issue.error("Expected exactly one statement", self._translate(self._whole)))
            return StatementPlan.invalid(), self.issues

        stmt = statements[0]
        columns: List[Column] = []
        returning: Optional[List[Column]] = None
        if isinstance(stmt, exp.Insert):
            kind = StatementKind.REPLACE if self.is_replace else StatementKind.INSERT
            returning = self._insert(stmt)
        elif isinstance(stmt, exp.Update):
            kind = StatementKind.UPDATE
            self._update(stmt)
        elif isinstance(stmt, exp.Delete):
            kind = StatementKind.DELETE
            self._delete(stmt)
        elif isinstance(stmt, (exp.Select, exp.Subquery) + _SET_OPERATIONS):
            kind = StatementKind.SELECT
            columns = self._query(stmt, None)
        else:
            self.issues.append(Issue.error("Unsupported statement", self._span(stmt)))
            return StatementPlan.invalid(), self.issues

        plan = StatementPlan(
            kind=kind,
            arguments=self._arguments(),
            columns=columns,
            returning=returning,
        )
        return plan, self.issues

    # ── Placeholders ──────────────────────────────────────────────────────────

    def _substitute(self) -> str:
        query = self.query
        style = self.options.arguments
        out: List[str] = []
        out_len = 0
        cursor = 0
        question_slots = 0
        pending_lists: List[_Marker] = []
        used_slots = set()

        def edit(start: int, end: int, replacement: str) -> None:
            nonlocal out_len, cursor
            out.append(query[cursor:start])
            out_len += start - cursor
            self._edits.append((out_len, out_len + len(replacement), start, end))
            out.append(replacement)
            out_len += len(replacement)
            cursor = end

        def marker(span: Span, is_list: bool, slot: int) -> str:
            name = f"{_MARKER_PREFIX}{len(self.markers)}"
            self.markers[name] = _Marker(name=name, span=span, is_list=is_list, slot=slot)
            if is_list and slot < 0:
                pending_lists.append(self.markers[name])
            return name

        start_at = 0
        if self.options.dialect == Dialect.MARIADB:
            match = _REPLACE_PATTERN.match(query)
            if match:
                self.is_replace = True
                edit(match.start(1), match.end(1), "INSERT")
                start_at = match.end(1)

        for match in scan_placeholders(query, start_at):
            span = Span.of(match.start(), match.end())
            if match.group("question") is not None:
                if style == PlaceholderStyle.DOLLAR:
                    self.issues.append(Issue.error("Use $1, $2, ... placeholders with PostgreSQL", span))
                    edit(span.start, span.end, "NULL")
                    continue
                edit(span.start, span.end, marker(span, False, question_slots))
                question_slots += 1
            elif match.group("dollar") is not None:
                if style == PlaceholderStyle.QUESTION_MARK:
                    self.issues.append(Issue.error("Use ? placeholders with MariaDB", span))
                    edit(span.start, span.end, "NULL")
                    continue
                number = int(match.group("number"))
                if number == 0:
                    self.issues.append(Issue.error("Placeholders are numbered from $1", span))
                    edit(span.start, span.end, "NULL")
                    continue
                used_slots.add(number - 1)
                edit(span.start, span.end, marker(span, False, number - 1))
            elif match.group("sentinel") is not None and self.options.list_expansion:
                if style == PlaceholderStyle.DOLLAR:
                    edit(span.start, span.end, marker(span, True, -1))
                else:
                    edit(span.start, span.end, marker(span, True, question_slots))
                    question_slots += 1

        # Dollar style: list sentinels take the lowest slots no $n claims
        slot = 0
        for item in pending_lists:
            while slot in used_slots:
                slot += 1
            item.slot = slot
            used_slots.add(slot)

        out.append(query[cursor:])
        return "".join(out)

    def _marker(self, node: Optional[exp.Expression]) -> Optional[_Marker]:
        if isinstance(node, exp.Column) and not node.table:
            return self.markers.get(node.name)
        return None

    def _bind(self, marker: _Marker, type_: SemanticType) -> None:
        existing = self.arg_types.get(marker.slot)
        if existing is None or existing.kind == TypeKind.ANY:
            self.arg_types[marker.slot] = type_.model_copy(update={"list_expansion": False})

    def _arguments(self) -> List[ArgumentSlot]:
        if not self.markers:
            return []
        by_slot: Dict[int, _Marker] = {}
        lists = set()
        for marker in self.markers.values():
            by_slot.setdefault(marker.slot, marker)
            if marker.is_list:
                lists.add(marker.slot)

        arguments: List[ArgumentSlot] = []
        for slot in range(max(by_slot) + 1):
            type_ = self.arg_types.get(slot)
            if type_ is None:
                if slot in by_slot:
                    self.issues.append(
                        Issue.warning(f"Unable to infer the type of argument {slot + 1}", by_slot[slot].span)
                    )
                type_ = _ANY
            if slot in lists:
                type_ = type_.as_list()
            arguments.append(ArgumentSlot.positional(slot, type_))
        return arguments

    # ── Spans ─────────────────────────────────────────────────────────────────

    def _source_offset(self, offset: int) -> int:
        shift = 0
        for text_start, text_end, query_start, query_end in self._edits:
            if offset < text_start:
                break
            if offset < text_end:
                return query_start + min(offset - text_start, query_end - query_start)
            shift = query_end - text_end
        return offset + shift

    def _translate(self, span: Span) -> Span:
        return Span.of(self._source_offset(span.start), self._source_offset(span.end))

    def _span(self, node: Optional[exp.Expression]) -> Span:
        marker = self._marker(node)
        if marker is not None:
            return marker.span
        return self._translate(node_span(node, self._whole))

    def _error(self, message: str, node: Optional[exp.Expression], *fragments: Tuple[str, Span]) -> None:
        self.issues.append(Issue.error(message, self._span(node), *fragments))

    # ── Statements ────────────────────────────────────────────────────────────

    def _query(self, node: exp.Expression, parent: Optional[_Scope]) -> List[Column]:
        if isinstance(node, exp.Subquery):
            return self._query(node.this, parent)
        if isinstance(node, exp.Select):
            return self._select(node, parent)
        if isinstance(node, _SET_OPERATIONS):
            left = self._query(node.this, parent)
            right = self._query(node.expression, parent)
            if len(left) != len(right):
                self._error(
                    f"Each side of {node.key.upper()} must return the same number of columns "
                    f"({len(left)} and {len(right)})",
                    node,
                )
                return left
            self._limit(node, _Scope(parent=parent))
            return [
                l.model_copy(update={"type": l.type.with_nullable(l.type.nullable or r.type.nullable)})
                for l, r in zip(left, right)
            ]
        self._visit(node, _Scope(parent=parent))
        return []

    def _select(self, select: exp.Select, parent: Optional[_Scope]) -> List[Column]:
        scope = _Scope(parent=parent)
        with_ = _arg(select, "with", "with_")
        if with_ is not None:
            for cte in with_.expressions:
                cte_columns = self._query(cte.this, scope)
                scope.ctes[cte.alias_or_name.lower()] = _derived_table(cte.alias_or_name, cte_columns)

        from_ = _arg(select, "from", "from_")
        if from_ is not None:
            self._add_source(from_.this, scope)
        for join in select.args.get("joins") or []:
            self._join(join, scope)

        where = select.args.get("where")
        if where is not None:
            self._condition(where.this, scope)

        columns = self._projections(select.expressions, scope)
        aliases = {c.name.lower(): c.type for c in columns if c.name}

        group = select.args.get("group")
        if group is not None:
            for expression in group.expressions:
                self._visit(expression, scope, aliases)
        having = select.args.get("having")
        if having is not None:
            self._condition(having.this, scope, aliases)
        order = select.args.get("order")
        if order is not None:
            for ordered in order.expressions:
                self._visit(ordered.this if isinstance(ordered, exp.Ordered) else ordered, scope, aliases)
        self._limit(select, scope)
        return columns

    def _insert(self, insert: exp.Insert) -> Optional[List[Column]]:
        target = insert.this
        names: Optional[List[exp.Expression]] = None
        if isinstance(target, exp.Schema):
            names = list(target.expressions)
            target = target.this

        scope = _Scope()
        source = self._add_source(target, scope)
        table = source.table if source is not None else None

        types: List[SemanticType] = []
        if names is None:
            types = [c.type for c in table.columns] if table is not None else []
        else:
            for ident in names:
                column = table.column(ident.name) if table is not None else None
                if table is not None and column is None:
                    self._error(f"Unknown column `{ident.name}` in `{table.name}`", ident)
                types.append(column.type if column is not None else _INVALID)

        values = insert.expression
        if isinstance(values, exp.Values):
            for row in values.expressions:
                items = list(row.expressions) if isinstance(row, exp.Tuple) else [row]
                if table is None and names is None:
                    for item in items:
                        self._assign(item, _INVALID, scope)
                    continue
                if len(items) != len(types):
                    self._error(f"Expected {len(types)} values but got {len(items)}", row)
                for item, type_ in zip(items, types):
                    self._assign(item, type_, scope)
        elif values is not None:
            selected = self._query(values, None)
            if table is not None and len(selected) != len(types):
                self._error(f"Expected {len(types)} columns but the query returns {len(selected)}", values)

        conflict = insert.args.get("conflict")
        if conflict is not None:
            conflict_scope = _Scope(sources=list(scope.sources))
            if self.options.dialect == Dialect.POSTGRESQL and table is not None:
                conflict_scope.sources.append(_Source(alias="excluded", table=table, span=source.span))
            for assignment in conflict.args.get("expressions") or []:
                self._assignment(assignment, conflict_scope)

        returning = insert.args.get("returning")
        if returning is None:
            return None
        return self._projections(returning.expressions, scope)

    def _update(self, update: exp.Update) -> None:
        scope = _Scope()
        self._add_source(update.this, scope)
        from_ = _arg(update, "from", "from_")
        if from_ is not None:
            self._add_source(from_.this, scope)
        for assignment in update.expressions:
            self._assignment(assignment, scope)
        where = update.args.get("where")
        if where is not None:
            self._condition(where.this, scope)
        self._limit(update, scope)

    def _delete(self, delete: exp.Delete) -> None:
        scope = _Scope()
        self._add_source(delete.this, scope)
        for using in delete.args.get("using") or []:
            self._add_source(using, scope)
        where = delete.args.get("where")
        if where is not None:
            self._condition(where.this, scope)
        self._limit(delete, scope)

    # ── Sources ───────────────────────────────────────────────────────────────

    def _add_source(self, node: exp.Expression, scope: _Scope, nullable: bool = False) -> Optional[_Source]:
        if isinstance(node, exp.Table):
            table = scope.cte(node.name) or self.schemas.table(node.name)
            span = self._span(node)
            if table is None:
                self._error(f"Unknown table `{node.name}`", node)
            source = _Source(alias=node.alias_or_name, table=table, span=span, nullable=nullable)
        elif isinstance(node, exp.Subquery):
            columns = self._query(node.this, scope.parent)
            source = _Source(
                alias=node.alias_or_name,
                table=_derived_table(node.alias_or_name, columns),
                span=self._span(node),
                nullable=nullable,
            )
        else:
            self._visit(node, scope)
            return None
        scope.sources.append(source)
        return source

    def _join(self, join: exp.Join, scope: _Scope) -> None:
        side = (join.side or "").upper()
        if side in ("RIGHT", "FULL"):
            for source in scope.sources:
                source.nullable = True
        self._add_source(join.this, scope, nullable=side in ("LEFT", "FULL"))
        on = join.args.get("on")
        if on is not None:
            self._condition(on, scope)

    # ── Columns ───────────────────────────────────────────────────────────────

    def _column(
        self,
        node: exp.Column,
        scope: _Scope,
        aliases: Optional[Dict[str, SemanticType]] = None,
    ) -> SemanticType:
        name = node.name
        qualifier = node.table
        if qualifier:
            source = scope.find(qualifier)
            if source is None:
                self._error(f"Unknown table `{qualifier}`", node)
                return _INVALID
            if source.table is None:
                return _INVALID
            column = source.table.column(name)
            if column is None:
                self._error(
                    f"Unknown column `{qualifier}`.`{name}`",
                    node,
                    (f"`{qualifier}` refers to `{source.table.name}`", source.span),
                )
                return _INVALID
            return _source_type(source, column)

        current: Optional[_Scope] = scope
        while current is not None:
            matches: List[Tuple[_Source, TableColumn]] = []
            for source in current.sources:
                column = source.table.column(name) if source.table is not None else None
                if column is not None:
                    matches.append((source, column))
            if len(matches) > 1:
                self._error(
                    f"Ambiguous reference to column `{name}`",
                    node,
                    *[(f"Could be `{s.alias}`.`{name}`", s.span) for s, _ in matches],
                )
                return _INVALID
            if matches:
                return _source_type(*matches[0])
            if any(source.table is None for source in current.sources):
                return _INVALID
            current = current.parent

        if aliases and name.lower() in aliases:
            return aliases[name.lower()]
        self._error(f"Unknown column `{name}`", node)
        return _INVALID

    def _projections(self, expressions: List[exp.Expression], scope: _Scope) -> List[Column]:
        columns: List[Column] = []
        for expression in expressions:
            if isinstance(expression, exp.Star):
                for source in scope.sources:
                    columns.extend(source.columns())
                continue
            if isinstance(expression, exp.Column) and isinstance(expression.this, exp.Star):
                source = scope.find(expression.table)
                if source is None:
                    self._error(f"Unknown table `{expression.table}`", expression)
                else:
                    columns.extend(source.columns())
                continue

            if isinstance(expression, exp.Alias):
                name: Optional[str] = expression.alias
                inner = expression.this
            else:
                is_column = isinstance(expression, exp.Column) and self._marker(expression) is None
                name = expression.name if is_column else None
                inner = expression
            type_ = self._visit(inner, scope)
            if type_.kind == TypeKind.ANY and self._marker(inner) is None and not isinstance(inner, exp.Column):
                self.issues.append(Issue.warning("Unable to infer the type of this expression", self._span(inner)))
            columns.append(Column(name=name or None, type=type_))
        return columns

    # ── Expressions ───────────────────────────────────────────────────────────

    def _assignment(self, node: exp.Expression, scope: _Scope) -> None:
        """``column = value`` from SET / ON DUPLICATE KEY UPDATE / DO UPDATE SET."""
        if isinstance(node, exp.EQ) and isinstance(node.this, exp.Column):
            self._assign(node.expression, self._column(node.this, scope), scope)
        else:
            self._visit(node, scope)

    def _assign(self, value: exp.Expression, type_: SemanticType, scope: _Scope) -> None:
        """Value stored into a column: arguments take the column type, nullability included."""
        marker = self._marker(value)
        if marker is not None:
            self._bind(marker, type_)
        else:
            self._visit(value, scope)

    def _condition(
        self,
        node: exp.Expression,
        scope: _Scope,
        aliases: Optional[Dict[str, SemanticType]] = None,
    ) -> None:
        marker = self._marker(node)
        if marker is not None:
            self._bind(marker, _BOOL)
        else:
            self._visit(node, scope, aliases)

    def _limit(self, node: exp.Expression, scope: _Scope) -> None:
        kind = TypeKind.UINT64 if self.options.dialect == Dialect.MARIADB else TypeKind.INT64
        for key in ("limit", "offset"):
            clause = node.args.get(key)
            if not isinstance(clause, (exp.Limit, exp.Offset)):
                continue
            for sub in ("expression", "offset"):
                value = clause.args.get(sub)
                if value is None:
                    continue
                marker = self._marker(value)
                if marker is not None:
                    self._bind(marker, SemanticType.of(kind))
                else:
                    self._visit(value, scope)

    def _compare(self, left: exp.Expression, right: exp.Expression, scope, aliases) -> Tuple[SemanticType, SemanticType]:
        """Type both operands; an argument on one side takes the (non-null) type of the other."""
        left_type = self._visit(left, scope, aliases)
        right_type = self._visit(right, scope, aliases)
        left_marker = self._marker(left)
        right_marker = self._marker(right)
        if left_marker is not None and right_marker is None:
            self._bind(left_marker, right_type.with_nullable(False))
        elif right_marker is not None and left_marker is None:
            self._bind(right_marker, left_type.with_nullable(False))
        return left_type, right_type

    def _visit(
        self,
        node: Optional[exp.Expression],
        scope: _Scope,
        aliases: Optional[Dict[str, SemanticType]] = None,
    ) -> SemanticType:
        """Type ``node``, validating columns and typing arguments beneath it."""
        if node is None:
            return _ANY
        if self._marker(node) is not None:
            return _ANY
        if isinstance(node, exp.Column):
            if isinstance(node.this, exp.Star):
                return _ANY
            return self._column(node, scope, aliases)
        if isinstance(node, (exp.Paren, exp.Alias)):
            return self._visit(node.this, scope, aliases)

        if isinstance(node, exp.Literal):
            if node.is_string:
                return _STRING
            if node.is_int:
                return SemanticType.of(TypeKind.INT64)
            return SemanticType.of(TypeKind.FLOAT64)
        if isinstance(node, exp.Null):
            return SemanticType(kind=TypeKind.NULL)
        if isinstance(node, exp.Boolean):
            return _BOOL

        if isinstance(node, _COMPARISONS):
            left, right = self._compare(node.this, node.expression, scope, aliases)
            nullable = left.nullable or right.nullable
            if isinstance(node, exp.NullSafeEQ):
                nullable = False
            return _BOOL.with_nullable(nullable)
        if isinstance(node, (exp.Like, exp.ILike)):
            for side in (node.this, node.expression):
                marker = self._marker(side)
                if marker is not None:
                    self._bind(marker, _STRING)
                else:
                    self._visit(side, scope, aliases)
            return _BOOL
        if isinstance(node, exp.In):
            return self._in(node, scope, aliases)
        if isinstance(node, exp.Between):
            value = self._visit(node.this, scope, aliases)
            for key in ("low", "high"):
                bound = node.args.get(key)
                marker = self._marker(bound)
                if marker is not None:
                    self._bind(marker, value.with_nullable(False))
                else:
                    self._visit(bound, scope, aliases)
            return _BOOL.with_nullable(value.nullable)
        if isinstance(node, exp.Is):
            self._visit(node.this, scope, aliases)
            return _BOOL
        if isinstance(node, (exp.And, exp.Or, exp.Xor)):
            self._condition(node.this, scope, aliases)
            self._condition(node.expression, scope, aliases)
            return _BOOL
        if isinstance(node, exp.Not):
            self._condition(node.this, scope, aliases)
            return _BOOL
        if isinstance(node, exp.Exists):
            self._query(node.this, scope)
            return _BOOL

        if isinstance(node, _ARITHMETIC):
            left, right = self._compare(node.this, node.expression, scope, aliases)
            return _arithmetic(node, left, right)
        if isinstance(node, exp.Neg):
            return self._visit(node.this, scope, aliases)

        if isinstance(node, exp.Count):
            for child in node.iter_expressions():
                self._visit(child, scope, aliases)
            return SemanticType.of(TypeKind.INT64)
        if isinstance(node, exp.Sum):
            inner = self._visit(node.this, scope, aliases)
            if inner.kind.is_integer:
                kind = TypeKind.FLOAT if self.options.dialect == Dialect.MARIADB else TypeKind.INT64
                return SemanticType(kind=kind)
            if inner.kind.is_float:
                return SemanticType(kind=TypeKind.FLOAT64)
            return _ANY
        if isinstance(node, exp.Avg):
            self._visit(node.this, scope, aliases)
            return SemanticType(kind=TypeKind.FLOAT)
        if isinstance(node, (exp.Min, exp.Max)):
            return self._visit(node.this, scope, aliases).with_nullable(True)

        if isinstance(node, (exp.Cast, exp.TryCast)):
            target, _ = semantic_type_of(node.to, self.options.dialect)
            marker = self._marker(node.this)
            if marker is not None:
                self._bind(marker, target.with_nullable(False))
                return target.with_nullable(False)
            inner = self._visit(node.this, scope, aliases)
            return target.with_nullable(inner.nullable or isinstance(node, exp.TryCast))
        if isinstance(node, exp.Coalesce):
            return self._coalesce([node.this] + list(node.expressions), scope, aliases)
        if isinstance(node, (exp.Concat, exp.DPipe)):
            parts = [self._visit(child, scope, aliases) for child in node.iter_expressions()]
            return _STRING.with_nullable(any(p.nullable for p in parts))
        if isinstance(node, (exp.Upper, exp.Lower, exp.Trim, exp.Substring)):
            inner = self._visit(node.this, scope, aliases)
            for child in node.iter_expressions():
                if child is not node.this:
                    self._visit(child, scope, aliases)
            return _STRING.with_nullable(inner.nullable)
        if isinstance(node, exp.CurrentTimestamp):
            return SemanticType.of(TypeKind.TIMESTAMP if self.options.dialect == Dialect.POSTGRESQL else TypeKind.DATETIME)
        if isinstance(node, exp.CurrentDate):
            return SemanticType.of(TypeKind.DATE)
        if isinstance(node, exp.Case):
            return self._case(node, scope, aliases)
        if isinstance(node, (exp.Subquery, exp.Select) + _SET_OPERATIONS):
            columns = self._query(node, scope)
            if len(columns) != 1:
                self._error(f"Subquery must return exactly one column, not {len(columns)}", node)
                return _INVALID
            return columns[0].type.with_nullable(True)

        for child in node.iter_expressions():
            self._visit(child, scope, aliases)
        return _ANY

    def _in(self, node: exp.In, scope: _Scope, aliases) -> SemanticType:
        value = self._visit(node.this, scope, aliases)
        value_marker = self._marker(node.this)
        for item in node.expressions:
            marker = self._marker(item)
            if marker is not None:
                self._bind(marker, value.with_nullable(False))
                continue
            item_type = self._visit(item, scope, aliases)
            if value_marker is not None:
                self._bind(value_marker, item_type.with_nullable(False))
        query = node.args.get("query")
        if query is not None:
            columns = self._query(query, scope)
            if value_marker is not None and len(columns) == 1:
                self._bind(value_marker, columns[0].type.with_nullable(False))
        return _BOOL.with_nullable(value.nullable)

    def _coalesce(self, items: List[exp.Expression], scope: _Scope, aliases) -> SemanticType:
        types = [self._visit(item, scope, aliases) for item in items]
        known = [t for t in types if t.kind not in (TypeKind.ANY, TypeKind.NULL)]
        result = known[0] if known else _ANY
        for item in items:
            marker = self._marker(item)
            if marker is not None and known:
                self._bind(marker, result)
        return result.with_nullable(all(t.nullable for t in types))

    def _case(self, node: exp.Case, scope: _Scope, aliases) -> SemanticType:
        if node.this is not None:
            self._visit(node.this, scope, aliases)
        branches: List[SemanticType] = []
        for branch in node.args.get("ifs") or []:
            self._condition(branch.this, scope, aliases)
            branches.append(self._visit(branch.args.get("true"), scope, aliases))
        default = node.args.get("default")
        if default is not None:
            branches.append(self._visit(default, scope, aliases))
        known = [t for t in branches if t.kind not in (TypeKind.ANY, TypeKind.NULL)]
        if not known:
            return _ANY
        nullable = default is None or any(t.nullable for t in branches)
        return known[0].with_nullable(nullable)


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _source_type(source: _Source, column: TableColumn) -> SemanticType:
    return column.type.with_nullable(True) if source.nullable else column.type


def _derived_table(name: str, columns: List[Column]) -> Table:
    """Table view of a CTE or derived table; unnamed columns are not addressable."""
    return Table(
        name=name,
        columns=[TableColumn(name=c.name, type=c.type) for c in columns if c.name],
    )


def _arithmetic(node: exp.Expression, left: SemanticType, right: SemanticType) -> SemanticType:
    nullable = left.nullable or right.nullable
    kinds = {left.kind, right.kind} - {TypeKind.ANY, TypeKind.NULL}
    if TypeKind.INVALID in kinds:
        return _INVALID
    if not kinds:
        return SemanticType(kind=TypeKind.ANY, nullable=nullable)
    if isinstance(node, exp.Div) or any(k.is_float for k in kinds):
        return SemanticType(kind=TypeKind.FLOAT64, nullable=nullable)
    if all(k.is_integer for k in kinds):
        return SemanticType(kind=TypeKind.INT64, nullable=nullable)
    return SemanticType(kind=TypeKind.ANY, nullable=nullable)
