# -*- coding: utf-8 -*-
"""
Schema/dialect bootstrap.

A SchemaContext is built once from the schema source and passed into every
compile call. ``get_schema_context()`` provides the process-wide default:
built lazily on first use under a lock, read without locking afterwards.
A failed build is remembered and re-raised to every later caller; it is
never retried.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from rich.console import Console

from typed_sql import config
from typed_sql.diagnostics import report_schema_issues
from typed_sql.issues import Issue, SchemaFatalError
from typed_sql.schema import SchemaSet, detect_dialect, parse_schema
from typed_sql.types import Dialect, TypeOptions

logger = logging.getLogger(__name__)


class SchemaContext(BaseModel):
    """Loaded schema, its dialect and any warnings reported while loading."""

    schemas: SchemaSet
    dialect: Dialect
    source: str = ""
    path: Optional[Path] = None
    warnings: List[Issue] = Field(default_factory=list)

    @classmethod
    def from_source(
        cls,
        source: str,
        path: Optional[Path] = None,
        console: Optional[Console] = None,
    ) -> "SchemaContext":
        """
        Type-check ``source`` and build a context.

        Issues are written to ``console`` (stderr by default).

        Raises:
            SchemaFatalError: If the schema has any error-level issue.
        """
        origin = path.name if path is not None else config.SCHEMA_FILENAME
        dialect = detect_dialect(source)
        schemas, issues = parse_schema(source, dialect)
        report_schema_issues(issues, source, origin, console=console, color=config.use_color())
        logger.info("Loaded %s: %d tables (%s)", origin, len(schemas), dialect.value)
        return cls(schemas=schemas, dialect=dialect, source=source, path=path, warnings=list(issues))

    @property
    def options(self) -> TypeOptions:
        """Oracle options for this dialect, list expansion enabled."""
        return TypeOptions.for_dialect(self.dialect)

    model_config = {"extra": "forbid", "frozen": True}


def load_schema_context(path: Optional[Path] = None, console: Optional[Console] = None) -> SchemaContext:
    """
    Read and type-check the schema file.

    Args:
        path: Schema file; located with ``config.find_schema_path`` when omitted.

    Raises:
        SchemaFatalError: If the file cannot be found, read or type-checked.
    """
    path = path or config.find_schema_path()
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaFatalError(f"Unable to read schema from {path}: {exc}") from exc
    return SchemaContext.from_source(source, path=path, console=console)


# ─── Process-wide default ─────────────────────────────────────────────────────

_default_lock = threading.Lock()
_default_context: Optional[SchemaContext] = None
_default_error: Optional[SchemaFatalError] = None


def get_schema_context() -> SchemaContext:
    """Default context, constructed at most once per process."""
    global _default_context, _default_error

    context = _default_context
    if context is not None:
        return context
    with _default_lock:
        if _default_context is None and _default_error is None:
            try:
                _default_context = load_schema_context()
            except SchemaFatalError as exc:
                _default_error = exc
                logger.error("Schema bootstrap failed: %s", exc)
        if _default_error is not None:
            raise _default_error
        return _default_context


def reset_schema_context() -> None:
    """Forget the default context (tests only)."""
    global _default_context, _default_error
    with _default_lock:
        _default_context = None
        _default_error = None
