# -*- coding: utf-8 -*-
"""
Type compatibility matrix.

Public API:
    is_accepted(semantic, host, direction) -> bool
    accepts_as_input(semantic, host) -> bool
    accepts_as_output(semantic, host, column_index) -> bool
    input_type(semantic) -> str            # human readable requirement
    output_type(semantic) -> HostType      # canonical decode target

The matrix is a plain table: every semantic type maps to the set of base host
representations that may *supply* a value and the single representation a
value is *decoded* into. No widening: a 32-bit integer slot only accepts a
32-bit integer representation.
"""

from __future__ import annotations

import datetime as _dt
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, Optional

from pydantic import BaseModel

from typed_sql.types import SemanticType, TypeKind


class Direction(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


class HostRepr(str, Enum):
    """Base host representations a value can have on the application side."""

    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BOOL = "bool"
    STR = "str"
    BYTES = "bytes"
    BYTEARRAY = "bytearray"
    MEMORYVIEW = "memoryview"
    DATE = "date"
    DATETIME = "datetime"
    DATETIME_UTC = "datetime[utc]"
    TIME = "time"
    ANY = "Any"


class HostType(BaseModel):
    """
    A base representation plus its container forms.

        HostType(base=INT32)                                  int32
        HostType(base=INT32, ref=True)                        Ref[int32]
        HostType(base=INT32, optional=True)                   Optional[int32]
        HostType(base=INT32, optional=True, inner_ref=True)   Optional[Ref[int32]]
    """

    base: HostRepr
    optional: bool = False
    ref: bool = False
    inner_ref: bool = False

    @classmethod
    def parse(cls, text: str) -> "HostType":
        """Parse the rendering produced by ``str(HostType)``."""
        s = text.strip()
        ref = optional = inner_ref = False
        if s.startswith("Ref[") and s.endswith("]"):
            ref, s = True, s[4:-1].strip()
        if s.startswith("Optional[") and s.endswith("]"):
            optional, s = True, s[9:-1].strip()
            if s.startswith("Ref[") and s.endswith("]"):
                inner_ref, s = True, s[4:-1].strip()
        try:
            base = HostRepr(s)
        except ValueError:
            raise ValueError(f"Unknown host representation: {text!r}") from None
        return cls(base=base, optional=optional, ref=ref, inner_ref=inner_ref)

    def __str__(self) -> str:
        s = self.base.value
        if self.optional:
            if self.inner_ref:
                s = f"Ref[{s}]"
            s = f"Optional[{s}]"
        if self.ref:
            s = f"Ref[{s}]"
        return s

    model_config = {"extra": "forbid", "frozen": True}


# ─── The matrix ───────────────────────────────────────────────────────────────

_INTEGERS: FrozenSet[HostRepr] = frozenset(
    {
        HostRepr.UINT8,
        HostRepr.UINT16,
        HostRepr.UINT32,
        HostRepr.UINT64,
        HostRepr.INT8,
        HostRepr.INT16,
        HostRepr.INT32,
        HostRepr.INT64,
    }
)
_BYTES_LIKE: FrozenSet[HostRepr] = frozenset({HostRepr.BYTES, HostRepr.BYTEARRAY, HostRepr.MEMORYVIEW})

# semantic kind -> base representations accepted as input
_INPUT: Dict[TypeKind, FrozenSet[HostRepr]] = {
    TypeKind.UINT8: frozenset({HostRepr.UINT8}),
    TypeKind.UINT16: frozenset({HostRepr.UINT16}),
    TypeKind.UINT32: frozenset({HostRepr.UINT32}),
    TypeKind.UINT64: frozenset({HostRepr.UINT64}),
    TypeKind.INT8: frozenset({HostRepr.INT8}),
    TypeKind.INT16: frozenset({HostRepr.INT16}),
    TypeKind.INT32: frozenset({HostRepr.INT32}),
    TypeKind.INT64: frozenset({HostRepr.INT64}),
    TypeKind.INTEGER: _INTEGERS,
    TypeKind.FLOAT32: frozenset({HostRepr.FLOAT32}),
    TypeKind.FLOAT64: frozenset({HostRepr.FLOAT64}),
    TypeKind.FLOAT: frozenset({HostRepr.FLOAT32, HostRepr.FLOAT64}),
    TypeKind.BOOL: frozenset({HostRepr.BOOL}),
    TypeKind.BYTES: _BYTES_LIKE,
    TypeKind.STRING: frozenset({HostRepr.STR}),
    TypeKind.ENUM: frozenset({HostRepr.STR}),
    TypeKind.SET: frozenset({HostRepr.STR}),
    TypeKind.DATE: frozenset({HostRepr.DATE}),
    TypeKind.DATETIME: frozenset({HostRepr.DATETIME}),
    TypeKind.TIME: frozenset({HostRepr.TIME}),
    TypeKind.TIMESTAMP: frozenset({HostRepr.DATETIME, HostRepr.DATETIME_UTC}),
    TypeKind.JSON: frozenset({HostRepr.ANY}),
    TypeKind.ANY: frozenset({HostRepr.ANY}),
    TypeKind.NULL: frozenset({HostRepr.ANY}),
}

# semantic kind -> canonical decode representation
_OUTPUT: Dict[TypeKind, HostRepr] = {
    TypeKind.UINT8: HostRepr.UINT8,
    TypeKind.UINT16: HostRepr.UINT16,
    TypeKind.UINT32: HostRepr.UINT32,
    TypeKind.UINT64: HostRepr.UINT64,
    TypeKind.INT8: HostRepr.INT8,
    TypeKind.INT16: HostRepr.INT16,
    TypeKind.INT32: HostRepr.INT32,
    TypeKind.INT64: HostRepr.INT64,
    TypeKind.INTEGER: HostRepr.INT64,
    TypeKind.FLOAT32: HostRepr.FLOAT32,
    TypeKind.FLOAT64: HostRepr.FLOAT64,
    TypeKind.FLOAT: HostRepr.FLOAT64,
    TypeKind.BOOL: HostRepr.BOOL,
    TypeKind.BYTES: HostRepr.BYTES,
    TypeKind.STRING: HostRepr.STR,
    TypeKind.ENUM: HostRepr.STR,
    TypeKind.SET: HostRepr.STR,
    TypeKind.DATE: HostRepr.DATE,
    TypeKind.DATETIME: HostRepr.DATETIME,
    TypeKind.TIME: HostRepr.TIME,
    TypeKind.TIMESTAMP: HostRepr.DATETIME_UTC,
    TypeKind.JSON: HostRepr.STR,
    TypeKind.ANY: HostRepr.ANY,
    TypeKind.NULL: HostRepr.ANY,
    TypeKind.INVALID: HostRepr.INT64,
}

# Names used when describing an input requirement; the integer and float
# families are capabilities rather than a single representation.
_INPUT_NAMES: Dict[TypeKind, str] = {
    TypeKind.INTEGER: "Integer",
    TypeKind.FLOAT: "Float",
    TypeKind.TIMESTAMP: "Timestamp",
    TypeKind.BYTES: "Bytes",
    TypeKind.INVALID: "Unknown",
}

# Encoded width in bytes; None means "measured from the value"
_FIXED_SIZES: Dict[HostRepr, Optional[int]] = {
    HostRepr.UINT8: 1,
    HostRepr.INT8: 1,
    HostRepr.UINT16: 2,
    HostRepr.INT16: 2,
    HostRepr.UINT32: 4,
    HostRepr.INT32: 4,
    HostRepr.UINT64: 8,
    HostRepr.INT64: 8,
    HostRepr.FLOAT32: 4,
    HostRepr.FLOAT64: 8,
    HostRepr.BOOL: 1,
    HostRepr.DATE: 4,
    HostRepr.DATETIME: 8,
    HostRepr.DATETIME_UTC: 8,
    HostRepr.TIME: 8,
    HostRepr.STR: None,
    HostRepr.BYTES: None,
    HostRepr.BYTEARRAY: None,
    HostRepr.MEMORYVIEW: None,
    HostRepr.ANY: None,
}


def _input_forms(base: HostRepr, nullable: bool) -> Iterator[HostType]:
    yield HostType(base=base)
    yield HostType(base=base, ref=True)
    if nullable:
        for ref in (False, True):
            for inner_ref in (False, True):
                yield HostType(base=base, optional=True, ref=ref, inner_ref=inner_ref)


def accepted_inputs(semantic: SemanticType) -> FrozenSet[HostType]:
    """Every host type that may supply a value for ``semantic``."""
    nullable = semantic.nullable or semantic.kind == TypeKind.NULL
    bases = _INPUT.get(semantic.kind, frozenset())
    return frozenset(form for base in bases for form in _input_forms(base, nullable))


def accepts_as_input(semantic: SemanticType, host: HostType) -> bool:
    """True when ``host`` may be used to supply a value of type ``semantic``."""
    if semantic.kind == TypeKind.INVALID:
        # Gap slots carry no type information to check against
        return True
    return host in accepted_inputs(semantic)


def output_type(semantic: SemanticType) -> HostType:
    """Canonical decode target, wrapped in Optional when the column is nullable."""
    base = _OUTPUT.get(semantic.kind, HostRepr.ANY)
    return HostType(base=base, optional=semantic.nullable or semantic.kind == TypeKind.NULL)


def accepts_as_output(semantic: SemanticType, host: HostType, column_index: int) -> bool:
    """
    True when a value of column ``column_index`` (type ``semantic``) may be
    decoded into ``host``. Decoding never produces borrowed forms; a non-null
    column may also be received into an Optional container.
    """
    if column_index < 0 or host.ref or host.inner_ref:
        return False
    target = output_type(semantic)
    if host.base != target.base:
        return False
    return host.optional or not target.optional


def is_accepted(
    semantic: SemanticType,
    host: HostType,
    direction: Direction,
    column_index: int = 0,
) -> bool:
    """Single entry point over both directions of the matrix."""
    if direction == Direction.INPUT:
        return accepts_as_input(semantic, host)
    return accepts_as_output(semantic, host, column_index)


def input_type(semantic: SemanticType) -> str:
    """Human readable input requirement, e.g. ``Optional[int32]`` or ``Integer``."""
    kind = semantic.kind
    if kind in _INPUT_NAMES:
        name = _INPUT_NAMES[kind]
    else:
        bases = sorted(b.value for b in _INPUT.get(kind, frozenset()))
        name = " | ".join(bases) if bases else "Any"
    if semantic.nullable or kind == TypeKind.NULL:
        name = f"Optional[{name}]"
    return name


# ─── Size hints ───────────────────────────────────────────────────────────────


def fixed_size(semantic: SemanticType) -> Optional[int]:
    """Encoded width of one value of ``semantic``, or None when variable."""
    if semantic.kind in (TypeKind.INTEGER, TypeKind.FLOAT):
        return 8
    if semantic.kind == TypeKind.INVALID:
        return None
    return _FIXED_SIZES.get(_OUTPUT.get(semantic.kind, HostRepr.ANY))


def measure(value: Any) -> int:
    """Encoded size of one variable-width value; used by size-hint formulas."""
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if isinstance(value, memoryview):
        return value.nbytes
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 8
    if isinstance(value, (_dt.datetime, _dt.time)):
        return 8
    if isinstance(value, _dt.date):
        return 4
    return len(str(value).encode("utf-8"))
