# -*- coding: utf-8 -*-
"""
Issue model, error taxonomy and exceptions.

Two kinds of problem flow through the package:

  Issue       – reported by the schema type oracle (or the schema loader),
                located in the *query or schema text*, with optional
                cross-reference fragments.
  Diagnostic  – located at a *call site* (an argument expression, the query
                literal, a target-shape field), tagged with an ErrorKind.

Issues are converted into Diagnostics by ``typed_sql.diagnostics``.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class Level(str, Enum):
    """Severity of an issue or diagnostic."""

    WARNING = "warning"
    ERROR = "error"


class ErrorKind(str, Enum):
    """
    Canonical error taxonomy.

    Since this class inherits from str, members compare equal to their string
    values:
        ErrorKind.ARITY_MISMATCH == "arity_mismatch"  # True
    """

    SCHEMA_FATAL = "schema_fatal"
    UNSUPPORTED_CONSTRUCT = "unsupported_construct"
    ARITY_MISMATCH = "arity_mismatch"
    TYPE_INCOMPATIBLE = "type_incompatible"
    QUERY_ISSUE = "query_issue"
    INTERNAL_INCONSISTENCY = "internal_inconsistency"

    @property
    def is_fatal(self) -> bool:
        """Fatal kinds abort processing instead of degrading to a diagnostic."""
        return self in (ErrorKind.SCHEMA_FATAL, ErrorKind.INTERNAL_INCONSISTENCY)


class Span(BaseModel):
    """Half-open character range ``[start, end)`` in some source text."""

    start: int = 0
    end: int = 0

    @classmethod
    def of(cls, start: int, end: int) -> "Span":
        return cls(start=start, end=max(start, end))

    def __len__(self) -> int:
        return self.end - self.start

    model_config = {"extra": "forbid", "frozen": True}


class Fragment(BaseModel):
    """Secondary (message, span) pair, e.g. "column declared here"."""

    message: str
    span: Span

    model_config = {"extra": "forbid", "frozen": True}


class Issue(BaseModel):
    """One problem reported against a query or schema text."""

    level: Level
    message: str
    span: Span
    fragments: List[Fragment] = Field(default_factory=list)

    @classmethod
    def error(cls, message: str, span: Span, *fragments: Tuple[str, Span]) -> "Issue":
        return cls(
            level=Level.ERROR,
            message=message,
            span=span,
            fragments=[Fragment(message=m, span=s) for m, s in fragments],
        )

    @classmethod
    def warning(cls, message: str, span: Span, *fragments: Tuple[str, Span]) -> "Issue":
        return cls(
            level=Level.WARNING,
            message=message,
            span=span,
            fragments=[Fragment(message=m, span=s) for m, s in fragments],
        )

    @property
    def is_error(self) -> bool:
        return self.level == Level.ERROR

    model_config = {"extra": "forbid", "frozen": True}


class Diagnostic(BaseModel):
    """A problem pinned to a call-site location."""

    level: Level = Level.ERROR
    kind: ErrorKind
    message: str
    span: Span

    @property
    def is_error(self) -> bool:
        return self.level == Level.ERROR

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "kind": self.kind.value,
            "message": self.message,
            "span": [self.span.start, self.span.end],
        }

    def __str__(self) -> str:
        return f"{self.level.value}[{self.kind.value}] at {self.span.start}..{self.span.end}: {self.message}"

    model_config = {"extra": "forbid", "frozen": True}


def has_errors(items: List[Issue] | List[Diagnostic]) -> bool:
    """True when at least one Error-level entry is present."""
    return any(item.level == Level.ERROR for item in items)


# ─── Exceptions ───────────────────────────────────────────────────────────────


class TypedSqlError(Exception):
    """Base exception for all typed_sql errors."""


class SchemaFatalError(TypedSqlError):
    """The schema failed to load or type-check; nothing can be planned."""

    kind = ErrorKind.SCHEMA_FATAL

    def __init__(self, message: str, issues: Optional[List[Issue]] = None) -> None:
        self.issues = list(issues or [])
        super().__init__(message)


class InternalConsistencyError(TypedSqlError):
    """Planner and rewriter disagree about the query text (not a user error)."""

    kind = ErrorKind.INTERNAL_INCONSISTENCY


class QueryCompileError(TypedSqlError):
    """Raised when a compiled query carrying errors is used or checked."""

    def __init__(self, message: str, diagnostics: Optional[List[Diagnostic]] = None) -> None:
        self.diagnostics = list(diagnostics or [])
        super().__init__(message)
