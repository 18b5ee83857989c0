"""
Validation of the destination database.

- Registry completeness against the created schema (before loading)
- Final row counts against expected reference values (after loading)
"""

import sqlite3

import structlog

from .database import count_rows, table_columns, table_exists
from .errors import RegistryError, RowCountMismatchError
from .registry import TableRegistry, TableSpec

logger = structlog.get_logger(__name__)


def validate_registry_against_schema(conn: sqlite3.Connection, registry: TableRegistry) -> None:
    """
    Check that every registered table and defaulted column exists.

    Args:
        conn: SQLite connection with the schema applied
        registry: Tables about to be loaded

    Raises:
        RegistryError: Listing every missing table and column
    """
    problems = []

    for spec in registry:
        if not table_exists(conn, spec.table):
            problems.append(f"table '{spec.table}' does not exist")
            continue

        columns = set(table_columns(conn, spec.table))
        missing = [column for column in spec.defaults if column not in columns]
        if missing:
            problems.append(f"table '{spec.table}' has no column(s) {', '.join(missing)}")

    if problems:
        raise RegistryError("Registry does not match schema: " + "; ".join(problems))


def verify_row_count(conn: sqlite3.Connection, spec: TableSpec) -> int:
    """
    Compare a table's row count with its expected count.

    Args:
        conn: SQLite connection
        spec: Table with an expected count

    Returns:
        The verified row count

    Raises:
        RegistryError: If spec has no expected count
        RowCountMismatchError: If the counts differ in either direction
    """
    if spec.expected_count is None:
        raise RegistryError(f"No expected count registered for table '{spec.code}'")

    actual = count_rows(conn, spec.table)
    if actual != spec.expected_count:
        raise RowCountMismatchError(spec.table, spec.expected_count, actual)

    logger.info("row_count_verified", table=spec.table, rows=actual)
    return actual


def verify_row_counts(conn: sqlite3.Connection, registry: TableRegistry) -> dict[str, int]:
    """
    Verify row counts for every table with an expected count, in registry order.

    Tables without an expected count are skipped.

    Args:
        conn: SQLite connection
        registry: Tables to verify

    Returns:
        Dictionary mapping table code to verified row count

    Raises:
        RowCountMismatchError: On the first table whose count differs
    """
    verified = {}
    for spec in registry:
        if spec.expected_count is None:
            logger.warning("row_count_skipped", table=spec.table, reason="no expected count")
            continue
        verified[spec.code] = verify_row_count(conn, spec)

    return verified
