# -*- coding: utf-8 -*-
"""
Tests for schema loading.
"""

from helpers import MARIADB_SCHEMA, POSTGRES_SCHEMA
from typed_sql.issues import has_errors
from typed_sql.schema import detect_dialect, parse_schema
from typed_sql.types import Dialect, TypeKind


# =============================================================================
# Dialect detection
# =============================================================================

class TestDetectDialect:
    """The first line selects the SQL product."""

    def test_postgres_marker(self):
        assert detect_dialect(POSTGRES_SCHEMA) == Dialect.POSTGRESQL

    def test_default_is_mariadb(self):
        assert detect_dialect(MARIADB_SCHEMA) == Dialect.MARIADB
        assert detect_dialect("") == Dialect.MARIADB

    def test_marker_must_be_on_first_line(self):
        assert detect_dialect("CREATE TABLE t (id INT);\n-- sql-product: postgres") == Dialect.MARIADB


# =============================================================================
# Tables and columns
# =============================================================================

class TestParseSchema:
    """Tests for parse_schema()."""

    def test_tables_and_types(self):
        schemas, issues = parse_schema(MARIADB_SCHEMA)

        assert not has_errors(issues)
        assert len(schemas) == 2
        users = schemas.table("USERS")
        assert [c.name for c in users.columns] == ["id", "name", "email", "age", "active"]
        assert users.column("id").type.kind == TypeKind.INT32
        assert users.column("name").type.kind == TypeKind.STRING

    def test_nullability(self):
        schemas, _ = parse_schema(MARIADB_SCHEMA)
        users = schemas.table("users")

        assert users.column("id").type.nullable is False
        assert users.column("name").type.nullable is False
        assert users.column("email").type.nullable is True

    def test_tinyint_one_is_bool_on_mariadb(self):
        schemas, _ = parse_schema(MARIADB_SCHEMA)
        assert schemas.table("users").column("active").type.kind == TypeKind.BOOL

    def test_serial_is_not_null(self):
        schemas, issues = parse_schema(POSTGRES_SCHEMA)

        assert not has_errors(issues)
        column = schemas.table("users").column("id")
        assert column.type.kind == TypeKind.INT32
        assert column.type.nullable is False

    def test_table_level_primary_key(self):
        schemas, _ = parse_schema("CREATE TABLE t (a INT, b INT, PRIMARY KEY (a));")
        table = schemas.table("t")

        assert table.column("a").type.nullable is False
        assert table.column("b").type.nullable is True

    def test_drop_then_create(self):
        source = "CREATE TABLE t (a INT);\nDROP TABLE t;\nCREATE TABLE t (b INT);"
        schemas, issues = parse_schema(source)

        assert issues == []
        assert [c.name for c in schemas.table("t").columns] == ["b"]

    def test_drop_several_tables(self):
        schemas, issues = parse_schema("CREATE TABLE a (x INT);\nCREATE TABLE b (y INT);\nDROP TABLE a, b;")

        assert issues == []
        assert len(schemas) == 0


# =============================================================================
# ALTER TABLE
# =============================================================================

class TestAlterTable:
    """ALTER TABLE statements are applied in order."""

    def test_add_column(self):
        source = "CREATE TABLE t (a INT);\nALTER TABLE t ADD COLUMN b VARCHAR(10) NOT NULL;"
        schemas, issues = parse_schema(source)

        assert not has_errors(issues)
        column = schemas.table("t").column("b")
        assert column.type.kind == TypeKind.STRING
        assert column.type.nullable is False

    def test_modify_column(self):
        source = "CREATE TABLE t (a INT);\nALTER TABLE t MODIFY a BIGINT NOT NULL;"
        schemas, issues = parse_schema(source)

        assert issues == []
        table = schemas.table("t")
        assert [c.name for c in table.columns] == ["a"]
        assert table.column("a").type.kind == TypeKind.INT64
        assert table.column("a").type.nullable is False

    def test_postgres_alter_column(self):
        source = (
            "-- sql-product: postgres\n"
            "CREATE TABLE t (a INT, b TEXT NOT NULL);\n"
            "ALTER TABLE t ALTER COLUMN a TYPE BIGINT;\n"
            "ALTER TABLE t ALTER COLUMN a SET NOT NULL;\n"
            "ALTER TABLE t ALTER COLUMN b DROP NOT NULL;\n"
        )
        schemas, issues = parse_schema(source)

        assert not has_errors(issues)
        table = schemas.table("t")
        assert table.column("a").type.kind == TypeKind.INT64
        assert table.column("a").type.nullable is False
        assert table.column("b").type.nullable is True

    def test_alter_unknown_table(self):
        _, issues = parse_schema("ALTER TABLE missing ADD COLUMN b INT;")
        assert has_errors(issues)


# =============================================================================
# Schema problems
# =============================================================================

class TestSchemaIssues:
    """Problems are reported as located issues."""

    def test_duplicate_table(self):
        source = "CREATE TABLE t (a INT);\nCREATE TABLE t (b INT);"
        schemas, issues = parse_schema(source)

        errors = [i for i in issues if i.is_error]
        assert len(errors) == 1
        assert "already defined" in errors[0].message
        assert errors[0].fragments[0].message == "Previously defined here"
        assert [c.name for c in schemas.table("t").columns] == ["a"]

    def test_duplicate_column(self):
        _, issues = parse_schema("CREATE TABLE t (a INT, a INT);")

        assert has_errors(issues)
        assert "more than once" in issues[0].message

    def test_drop_unknown_table(self):
        _, issues = parse_schema("DROP TABLE missing;")
        assert has_errors(issues)

    def test_drop_if_exists_unknown_table(self):
        _, issues = parse_schema("DROP TABLE IF EXISTS missing;")
        assert issues == []

    def test_parse_error(self):
        schemas, issues = parse_schema("CREATE TABLE t (a INT")

        assert has_errors(issues)
        assert len(schemas) == 0
