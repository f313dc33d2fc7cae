# -*- coding: utf-8 -*-
"""Small builders shared by the test modules."""

from typed_sql.binding import CallerExpression
from typed_sql.compat import HostType
from typed_sql.issues import Span


def expr(text, start, host=None):
    """Caller expression ``text`` written at offset ``start``."""
    return CallerExpression(
        text=text,
        span=Span.of(start, start + len(text)),
        host=HostType.parse(host) if host else None,
    )


def host(text):
    return HostType.parse(text)


# =============================================================================
# Test Schemas
# =============================================================================

MARIADB_SCHEMA = """\
CREATE TABLE users (
    id INT NOT NULL PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255),
    age INT,
    active TINYINT(1) NOT NULL
);

CREATE TABLE orders (
    id INT NOT NULL PRIMARY KEY,
    user_id INT NOT NULL,
    amount DOUBLE NOT NULL,
    note TEXT
);
"""

POSTGRES_SCHEMA = """\
-- sql-product: postgres
CREATE TABLE users (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT
);
"""
