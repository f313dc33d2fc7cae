# -*- coding: utf-8 -*-
"""
Issue rendering.

Two renderings of the same issue list:

  issues_to_diagnostics(...)  – build-failing: one plain-text Diagnostic pinned
                                to the query's call site, carrying the full
                                report of every issue.
  report_schema_issues(...)   – stream: a rich-styled report on stderr used at
                                schema bootstrap; any error aborts.

Report layout::

    Error: Unknown column `nme`
     --> query:1:8
      |
    1 | SELECT nme FROM users
      |        ^^^ Unknown column `nme`
      |
"""

from __future__ import annotations

import bisect
import io
import logging
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.text import Text

from typed_sql.issues import Diagnostic, ErrorKind, Issue, Level, SchemaFatalError, Span, has_errors

logger = logging.getLogger(__name__)

ERROR_STYLE = "bold red"
WARNING_STYLE = "bold yellow"
FRAGMENT_STYLE = "bold blue"
GUTTER_STYLE = "dim"

PRIMARY_MARK = "^"
FRAGMENT_MARK = "-"


class _SourceMap:
    """Offset → (line, column) lookup over one source text."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.lines = source.split("\n")
        self.starts: List[int] = []
        offset = 0
        for line in self.lines:
            self.starts.append(offset)
            offset += len(line) + 1

    def locate(self, offset: int) -> Tuple[int, int]:
        """Zero-based (line, column) of ``offset``, clamped to the text."""
        offset = max(0, min(offset, len(self.source)))
        line = bisect.bisect_right(self.starts, offset) - 1
        return line, offset - self.starts[line]


def _level_style(level: Level) -> str:
    return ERROR_STYLE if level == Level.ERROR else WARNING_STYLE


def render_issue(issue: Issue, source: str, origin: str = "query") -> Text:
    """Render one issue with its fragments as a styled ``rich.text.Text``."""
    smap = _SourceMap(source)
    style = _level_style(issue.level)

    labels: List[Tuple[Span, str, str, str]] = [(issue.span, issue.message, PRIMARY_MARK, style)]
    labels.extend((f.span, f.message, FRAGMENT_MARK, FRAGMENT_STYLE) for f in issue.fragments)

    by_line: dict = {}
    for span, message, mark, mark_style in labels:
        line, column = smap.locate(span.start)
        by_line.setdefault(line, []).append((column, span, message, mark, mark_style))

    head_line, head_col = smap.locate(issue.span.start)
    width = len(str(max(by_line) + 1))
    pad = " " * width

    text = Text()
    text.append(issue.level.value.capitalize(), style=style)
    text.append(f": {issue.message}\n")
    text.append(f"{pad}--> ", style=GUTTER_STYLE)
    text.append(f"{origin}:{head_line + 1}:{head_col + 1}\n")
    text.append(f"{pad} |\n", style=GUTTER_STYLE)

    for line in sorted(by_line):
        content = smap.lines[line] if line < len(smap.lines) else ""
        text.append(f"{str(line + 1).rjust(width)} | ", style=GUTTER_STYLE)
        text.append(f"{content}\n")
        for column, span, message, mark, mark_style in sorted(by_line[line], key=lambda x: x[0]):
            length = max(1, min(len(span), len(content) - column))
            text.append(f"{pad} | ", style=GUTTER_STYLE)
            text.append(" " * column)
            text.append(mark * length + f" {message}", style=mark_style)
            text.append("\n")
    text.append(f"{pad} |\n", style=GUTTER_STYLE)
    return text


def render_issues(issues: Sequence[Issue], source: str, origin: str = "query") -> Text:
    text = Text()
    for issue in issues:
        text.append_text(render_issue(issue, source, origin))
    return text


def present(
    issues: Sequence[Issue],
    source: str,
    color: bool = False,
    origin: str = "query",
) -> Tuple[bool, str]:
    """
    Render ``issues`` against ``source``.

    Returns:
        (has_error, rendered) – ``rendered`` carries ANSI styling when
        ``color`` is True and is plain text otherwise.
    """
    text = render_issues(issues, source, origin)
    if not color:
        return has_errors(list(issues)), text.plain
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=True, color_system="standard", width=200, soft_wrap=True)
    console.print(text, end="")
    return has_errors(list(issues)), buffer.getvalue()


def issues_to_diagnostics(issues: Sequence[Issue], source: str, span: Span) -> List[Diagnostic]:
    """
    Build-failing rendering: collapse every issue into one diagnostic at the
    call-site ``span``. Warnings alone yield a WARNING diagnostic that never
    blocks the build.
    """
    if not issues:
        return []
    has_error, rendered = present(issues, source)
    level = Level.ERROR if has_error else Level.WARNING
    if not has_error:
        logger.warning("Query produced warnings:\n%s", rendered)
    return [Diagnostic(level=level, kind=ErrorKind.QUERY_ISSUE, message=rendered, span=span)]


def report_schema_issues(
    issues: Sequence[Issue],
    source: str,
    origin: str,
    console: Optional[Console] = None,
    color: bool = True,
) -> bool:
    """
    Stream rendering used once at schema bootstrap.

    Every issue is written to ``console`` (stderr by default). Any error-level
    issue makes the schema untrustworthy and raises SchemaFatalError.

    Returns:
        False when only warnings (or nothing) were reported.
    """
    if not issues:
        return False
    console = console or Console(stderr=True, no_color=not color, highlight=False)
    for issue in issues:
        console.print(render_issue(issue, source, origin), end="")
    if has_errors(list(issues)):
        errors = sum(1 for i in issues if i.is_error)
        raise SchemaFatalError(f"Errors processing {origin}: {errors} error(s)", issues=list(issues))
    return False
