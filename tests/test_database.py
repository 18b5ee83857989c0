"""Unit tests for schema creation, index creation and row counts."""

import pytest

from patstat_etl.database import (
    build_indexes,
    count_rows,
    initialize_database,
    reset_database,
    table_columns,
    table_exists,
)
from patstat_etl.errors import IndexBuildError, SchemaError
from patstat_etl.registry import load_registry


def test_initialize_database_creates_every_registered_table(conn):
    for spec in load_registry():
        assert table_exists(conn, spec.table), spec.table


def test_initialize_database_uses_custom_schema(tmp_path):
    schema = tmp_path / "schema.sql"
    schema.write_text("CREATE TABLE tls801_country (ctry_code VARCHAR(2));")

    connection = initialize_database(tmp_path / "custom.sqlite", schema)
    try:
        assert table_columns(connection, "tls801_country") == ["ctry_code"]
        assert not table_exists(connection, "tls201_appln")
    finally:
        connection.close()


def test_initialize_database_raises_for_missing_schema(tmp_path):
    with pytest.raises(SchemaError):
        initialize_database(tmp_path / "db.sqlite", tmp_path / "missing.sql")


def test_initialize_database_raises_for_invalid_ddl(tmp_path):
    schema = tmp_path / "schema.sql"
    schema.write_text("CREATE TABLE broken (;")

    with pytest.raises(SchemaError):
        initialize_database(tmp_path / "db.sqlite", schema)


def test_build_indexes_succeeds_once_on_fresh_database(conn):
    build_indexes(conn)

    index_names = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")
    }
    assert "ix_tls801_ctry_code" in index_names


def test_build_indexes_fails_when_applied_twice(conn):
    build_indexes(conn)

    with pytest.raises(IndexBuildError, match="already exists"):
        build_indexes(conn)


def test_build_indexes_raises_for_missing_file(conn, tmp_path):
    with pytest.raises(IndexBuildError):
        build_indexes(conn, tmp_path / "missing.sql")


def test_count_rows_counts_appended_rows(conn):
    conn.executemany(
        "INSERT INTO tls801_country (ctry_code) VALUES (?)",
        [("AT",), ("DE",)]
    )

    assert count_rows(conn, "tls801_country") == 2


def test_reset_database_removes_existing_file(tmp_path):
    db_path = tmp_path / "patstat.sqlite"
    db_path.write_bytes(b"")

    assert reset_database(db_path) is True
    assert not db_path.exists()
    assert reset_database(db_path) is False
