# -*- coding: utf-8 -*-
"""Shared contexts for the typed_sql tests."""

import pytest

from helpers import MARIADB_SCHEMA, POSTGRES_SCHEMA
from typed_sql.context import SchemaContext, reset_schema_context


@pytest.fixture
def mariadb_context():
    return SchemaContext.from_source(MARIADB_SCHEMA)


@pytest.fixture
def postgres_context():
    return SchemaContext.from_source(POSTGRES_SCHEMA)


@pytest.fixture(autouse=True)
def _fresh_default_context():
    reset_schema_context()
    yield
    reset_schema_context()
