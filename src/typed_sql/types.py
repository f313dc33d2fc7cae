# -*- coding: utf-8 -*-
"""
Semantic SQL types and the statement model produced by the type oracle.

    SemanticType   – logical type of a column or argument slot
    ArgumentSlot   – positional (index) or named argument with its type
    Column         – optionally named result column with its type
    StatementPlan  – one tagged variant over the statement kinds
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class TypeKind(str, Enum):
    """All semantic type tags."""

    # ── Integers ──────────────────────────────────────────────────────────
    UINT8 = "u8"
    UINT16 = "u16"
    UINT32 = "u32"
    UINT64 = "u64"
    INT8 = "i8"
    INT16 = "i16"
    INT32 = "i32"
    INT64 = "i64"
    INTEGER = "integer"

    # ── Floats ────────────────────────────────────────────────────────────
    FLOAT32 = "f32"
    FLOAT64 = "f64"
    FLOAT = "float"

    # ── Scalars ───────────────────────────────────────────────────────────
    BOOL = "bool"
    BYTES = "bytes"
    STRING = "string"
    ENUM = "enum"
    SET = "set"

    # ── Date / time ───────────────────────────────────────────────────────
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    TIMESTAMP = "timestamp"

    # ── Opaque ────────────────────────────────────────────────────────────
    JSON = "json"
    ANY = "any"
    NULL = "null"
    INVALID = "invalid"

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_KINDS

    @property
    def is_float(self) -> bool:
        return self in (TypeKind.FLOAT32, TypeKind.FLOAT64, TypeKind.FLOAT)


_INTEGER_KINDS = frozenset(
    {
        TypeKind.UINT8,
        TypeKind.UINT16,
        TypeKind.UINT32,
        TypeKind.UINT64,
        TypeKind.INT8,
        TypeKind.INT16,
        TypeKind.INT32,
        TypeKind.INT64,
        TypeKind.INTEGER,
    }
)


class SemanticType(BaseModel):
    """
    Logical type of an argument slot or column. Immutable.

    Constructed directly, a type is nullable unless told otherwise, which is
    what schema columns and aggregates start from. ``SemanticType.of()`` is the
    shorthand for a known non-null value (literals, placeholders typed from
    their context).
    """

    kind: TypeKind
    nullable: bool = True
    list_expansion: bool = False
    values: Tuple[str, ...] = ()

    @classmethod
    def of(cls, kind: TypeKind, nullable: bool = False, list_expansion: bool = False) -> "SemanticType":
        """Non-null by default."""
        return cls(kind=kind, nullable=nullable, list_expansion=list_expansion)

    @classmethod
    def invalid(cls) -> "SemanticType":
        return cls(kind=TypeKind.INVALID, nullable=False)

    def with_nullable(self, nullable: bool) -> "SemanticType":
        return self.model_copy(update={"nullable": nullable})

    def as_list(self) -> "SemanticType":
        return self.model_copy(update={"list_expansion": True})

    def __str__(self) -> str:
        name = self.kind.value
        if self.values:
            name += "(" + ", ".join(repr(v) for v in self.values) + ")"
        if self.list_expansion:
            name = f"list[{name}]"
        if self.nullable:
            name = f"nullable {name}"
        return name

    model_config = {"extra": "forbid", "frozen": True}


class ArgumentKey(BaseModel):
    """Zero-based position or name of an argument slot (exactly one is set)."""

    index: Optional[int] = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ArgumentKey":
        if (self.index is None) == (self.name is None):
            raise ValueError("ArgumentKey needs exactly one of index or name")
        if self.index is not None and self.index < 0:
            raise ValueError("ArgumentKey index must be >= 0")
        return self

    @property
    def is_named(self) -> bool:
        return self.name is not None

    def __str__(self) -> str:
        return f":{self.name}" if self.is_named else f"#{self.index}"

    model_config = {"extra": "forbid", "frozen": True}


class ArgumentSlot(BaseModel):
    """An argument position declared by the query, with its semantic type."""

    key: ArgumentKey
    type: SemanticType

    @classmethod
    def positional(cls, index: int, type_: SemanticType) -> "ArgumentSlot":
        return cls(key=ArgumentKey(index=index), type=type_)

    @classmethod
    def named(cls, name: str, type_: SemanticType) -> "ArgumentSlot":
        return cls(key=ArgumentKey(name=name), type=type_)

    model_config = {"extra": "forbid", "frozen": True}


class Column(BaseModel):
    """Result column; ``name`` is None for computed expressions."""

    name: Optional[str] = None
    type: SemanticType

    model_config = {"extra": "forbid", "frozen": True}


# ─── Dialects ─────────────────────────────────────────────────────────────────


class PlaceholderStyle(str, Enum):
    """Positional placeholder syntax."""

    QUESTION_MARK = "question_mark"
    DOLLAR = "dollar"

    def placeholder(self, position: int) -> str:
        """Placeholder for the 1-based parameter ``position``."""
        if self == PlaceholderStyle.DOLLAR:
            return f"${position}"
        return "?"


class Dialect(str, Enum):
    """Supported SQL products."""

    MARIADB = "mariadb"
    POSTGRESQL = "postgresql"

    @property
    def placeholder_style(self) -> PlaceholderStyle:
        if self == Dialect.POSTGRESQL:
            return PlaceholderStyle.DOLLAR
        return PlaceholderStyle.QUESTION_MARK

    @property
    def sqlglot_dialect(self) -> str:
        """Read/write dialect name understood by sqlglot."""
        return "postgres" if self == Dialect.POSTGRESQL else "mysql"


class TypeOptions(BaseModel):
    """Options passed to the type oracle for each query."""

    dialect: Dialect = Dialect.MARIADB
    arguments: PlaceholderStyle = PlaceholderStyle.QUESTION_MARK
    list_expansion: bool = False

    @classmethod
    def for_dialect(cls, dialect: Dialect, list_expansion: bool = True) -> "TypeOptions":
        return cls(
            dialect=dialect,
            arguments=dialect.placeholder_style,
            list_expansion=list_expansion,
        )

    model_config = {"extra": "forbid", "frozen": True}


# ─── Statements ───────────────────────────────────────────────────────────────


class StatementKind(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"
    INVALID = "invalid"


class StatementPlan(BaseModel):
    """
    Classified statement: kind, argument slots and result columns.

    ``columns`` is the select list (Select only); ``returning`` is the
    RETURNING list of Insert/Replace (None when the statement has none).
    """

    kind: StatementKind
    arguments: List[ArgumentSlot] = Field(default_factory=list)
    columns: List[Column] = Field(default_factory=list)
    returning: Optional[List[Column]] = None

    @classmethod
    def invalid(cls) -> "StatementPlan":
        return cls(kind=StatementKind.INVALID)

    @property
    def is_invalid(self) -> bool:
        return self.kind == StatementKind.INVALID

    @property
    def has_returning(self) -> bool:
        return self.kind in (StatementKind.INSERT, StatementKind.REPLACE) and self.returning is not None

    @property
    def produces_rows(self) -> bool:
        return self.kind == StatementKind.SELECT or self.has_returning

    def row_columns(self) -> Optional[List[Column]]:
        """Columns a result row carries, or None when the statement yields no rows."""
        if self.kind == StatementKind.SELECT:
            return list(self.columns)
        if self.has_returning:
            return list(self.returning or [])
        return None

    model_config = {"extra": "forbid", "frozen": True}
