# -*- coding: utf-8 -*-
"""
Tests for issue rendering.
"""

import io

import pytest
from rich.console import Console

from typed_sql.diagnostics import issues_to_diagnostics, present, report_schema_issues
from typed_sql.issues import ErrorKind, Issue, Level, SchemaFatalError, Span

QUERY = "SELECT nme FROM users"


def unknown_column():
    return Issue.error("Unknown column `nme`", Span.of(7, 10))


# =============================================================================
# Plain-text rendering
# =============================================================================

class TestPresent:
    """Tests for present()."""

    def test_error_report_layout(self):
        has_error, rendered = present([unknown_column()], QUERY)

        assert has_error is True
        lines = rendered.splitlines()
        assert lines[0] == "Error: Unknown column `nme`"
        assert lines[1].endswith("query:1:8")
        assert "1 | SELECT nme FROM users" in rendered
        assert "       ^^^ Unknown column `nme`" in rendered

    def test_fragments_use_dashes(self):
        issue = Issue.error(
            "Ambiguous reference to column `id`",
            Span.of(7, 9),
            ("Could be `a`.`id`", Span.of(15, 16)),
        )

        _, rendered = present([issue], "SELECT id FROM a, b")

        assert "^^ Ambiguous reference" in rendered
        assert "- Could be `a`.`id`" in rendered

    def test_warnings_only(self):
        has_error, rendered = present([Issue.warning("Unable to infer", Span.of(0, 6))], QUERY)

        assert has_error is False
        assert rendered.startswith("Warning: Unable to infer")

    def test_multiline_source(self):
        source = "SELECT id\nFROM userz"
        _, rendered = present([Issue.error("Unknown table `userz`", Span.of(15, 20))], source)

        assert "query:2:6" in rendered
        assert "2 | FROM userz" in rendered

    def test_color_output_has_ansi(self):
        _, rendered = present([unknown_column()], QUERY, color=True)
        assert "\x1b[" in rendered


# =============================================================================
# Build-failing rendering
# =============================================================================

class TestIssuesToDiagnostics:
    """All issues collapse into one diagnostic at the call site."""

    def test_nothing_to_report(self):
        assert issues_to_diagnostics([], QUERY, Span.of(0, 5)) == []

    def test_errors_become_one_error(self):
        call_site = Span.of(100, 125)
        issues = [unknown_column(), Issue.warning("Something else", Span.of(0, 6))]

        diagnostics = issues_to_diagnostics(issues, QUERY, call_site)

        assert len(diagnostics) == 1
        assert diagnostics[0].level == Level.ERROR
        assert diagnostics[0].kind == ErrorKind.QUERY_ISSUE
        assert diagnostics[0].span == call_site
        assert "Unknown column" in diagnostics[0].message
        assert "Something else" in diagnostics[0].message

    def test_warnings_do_not_block(self):
        diagnostics = issues_to_diagnostics([Issue.warning("Heads up", Span.of(0, 6))], QUERY, Span())

        assert diagnostics[0].level == Level.WARNING
        assert not diagnostics[0].is_error


# =============================================================================
# Stream rendering
# =============================================================================

class TestReportSchemaIssues:
    """Schema bootstrap reporting."""

    def test_error_raises_after_printing(self):
        buffer = io.StringIO()
        console = Console(file=buffer, no_color=True, width=120)

        with pytest.raises(SchemaFatalError) as exc_info:
            report_schema_issues([unknown_column()], QUERY, "schema.sql", console=console)

        assert "Unknown column `nme`" in buffer.getvalue()
        assert "schema.sql:1:8" in buffer.getvalue()
        assert len(exc_info.value.issues) == 1

    def test_warnings_are_printed_only(self):
        buffer = io.StringIO()
        console = Console(file=buffer, no_color=True, width=120)

        assert report_schema_issues([Issue.warning("ignored", Span.of(0, 6))], QUERY, "s.sql", console=console) is False
        assert "Warning: ignored" in buffer.getvalue()
