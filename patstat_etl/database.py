"""
SQLite store handling: schema creation, index creation and row counts.

Schema and index DDL are fixed SQL text executed verbatim. The packaged
files under sql/ are used unless a path is given.
"""

import sqlite3
from importlib import resources
from pathlib import Path
from typing import Optional, Union

import structlog

from .errors import IndexBuildError, SchemaError

logger = structlog.get_logger(__name__)

SCHEMA_FILE = "schema.sql"
INDEXES_FILE = "indexes.sql"


def read_sql(sql_path: Optional[Union[str, Path]], packaged_name: str) -> str:
    """
    Read a DDL script from disk, or the packaged copy when no path is given.

    Raises:
        FileNotFoundError: If sql_path does not exist
    """
    if sql_path is None:
        return (resources.files("patstat_etl") / "sql" / packaged_name).read_text(encoding="utf-8")

    sql_file = Path(sql_path)
    if not sql_file.exists():
        raise FileNotFoundError(f"SQL file not found: {sql_path}")
    return sql_file.read_text(encoding="utf-8")


def reset_database(db_path: Union[str, Path]) -> bool:
    """
    Delete an existing database file so the next run starts fresh.

    Returns:
        True if a file was removed
    """
    db_file = Path(db_path)
    if db_file.exists():
        db_file.unlink()
        logger.info("database_reset", db=str(db_file))
        return True
    return False


def initialize_database(
    db_path: Union[str, Path],
    schema_path: Optional[Union[str, Path]] = None
) -> sqlite3.Connection:
    """
    Open the SQLite database and create the schema if not exists.

    Args:
        db_path: Path to SQLite database file
        schema_path: Path to schema DDL; packaged sql/schema.sql when omitted

    Returns:
        SQLite connection, the store handle for the rest of the run

    Raises:
        SchemaError: If the schema file is missing or the DDL fails
    """
    try:
        schema_sql = read_sql(schema_path, SCHEMA_FILE)
    except OSError as e:
        raise SchemaError(f"Cannot read schema: {e}") from e

    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(schema_sql)
        conn.commit()
    except sqlite3.Error as e:
        conn.close()
        raise SchemaError(f"Failed to create schema in {db_path}: {e}") from e

    logger.info("schema_created", db=str(db_path))
    return conn


def build_indexes(conn: sqlite3.Connection, indexes_path: Optional[Union[str, Path]] = None) -> None:
    """
    Apply the index DDL. Must run once, after all tables are loaded.

    Args:
        conn: SQLite connection
        indexes_path: Path to index DDL; packaged sql/indexes.sql when omitted

    Raises:
        IndexBuildError: If the file is missing or any statement fails,
            including when the indexes already exist
    """
    try:
        indexes_sql = read_sql(indexes_path, INDEXES_FILE)
    except OSError as e:
        raise IndexBuildError(f"Cannot read index definitions: {e}") from e

    try:
        conn.executescript(indexes_sql)
        conn.commit()
    except sqlite3.Error as e:
        raise IndexBuildError(f"Failed to build indexes: {e}") from e

    logger.info("indexes_built")


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table,)
    )
    return cursor.fetchone() is not None


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Column names of a table in declaration order (empty if it does not exist)."""
    cursor = conn.execute(f'PRAGMA table_info("{table}")')
    return [row[1] for row in cursor.fetchall()]


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    """
    Count rows in a table.

    Table names come from the validated registry, never from data files.
    """
    cursor = conn.execute(f'SELECT COUNT(*) FROM "{table}"')
    return cursor.fetchone()[0]
