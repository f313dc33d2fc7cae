"""Configuration management for typed_sql"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from typed_sql.issues import SchemaFatalError

# Load environment variables from a .env in the working directory
load_dotenv()

SCHEMA_FILENAME = "typed-sql-schema.sql"

ENV_SCHEMA_PATH = "TYPED_SQL_SCHEMA"
ENV_LOG_LEVEL = "TYPED_SQL_LOG_LEVEL"
ENV_COLOR = "TYPED_SQL_COLOR"

DEFAULT_LOG_LEVEL = "WARNING"

_FALSE_VALUES = {"0", "false", "no", "off"}


def get_log_level() -> str:
    """Log level name from TYPED_SQL_LOG_LEVEL (default WARNING)."""
    return os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()


def use_color() -> bool:
    """Whether schema reports on stderr are coloured (TYPED_SQL_COLOR)."""
    return os.getenv(ENV_COLOR, "1").strip().lower() not in _FALSE_VALUES


def find_schema_path(start: Optional[Path] = None) -> Path:
    """
    Locate the schema file.

    TYPED_SQL_SCHEMA wins when set. Otherwise ``typed-sql-schema.sql`` is
    looked up in ``start`` (default: the working directory) and then in each
    parent directory, so a package nested in a larger project finds the
    project-level schema.

    Raises:
        SchemaFatalError: If no schema file can be found.
    """
    explicit = os.getenv(ENV_SCHEMA_PATH)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise SchemaFatalError(f"{ENV_SCHEMA_PATH} points to a missing file: {path}")
        return path.resolve()

    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / SCHEMA_FILENAME
        if candidate.is_file():
            return candidate
    raise SchemaFatalError(f"Unable to locate {SCHEMA_FILENAME} from {directory}")
