"""
CSV ingestion of extracted release files into SQLite.

Every extracted file belongs to exactly one logical table: the part of its
name before the first underscore is the table code
(``tls201_part03.csv`` -> ``tls201``). Files are parsed as text, missing
cells take the table's registered defaults, and rows are appended in file
order. Nothing is deduplicated or overwritten.
"""

import sqlite3
from pathlib import Path
from typing import Iterator, Union

import pandas as pd
import structlog

from .errors import TableLoadError
from .registry import TableRegistry, TableSpec

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 100_000
CSV_SUFFIX = ".csv"


def table_code_for(csv_path: Union[str, Path]) -> str:
    """
    Return the table code a file belongs to.

    Example:
        >>> table_code_for("tls201_part01.csv")
        'tls201'
    """
    path = Path(csv_path)
    if "_" in path.name:
        return path.name.split("_", 1)[0].lower()
    return path.stem.lower()


def _extracted_csv_files(scratch_dir: Union[str, Path]) -> list[Path]:
    return sorted(
        (p for p in Path(scratch_dir).rglob("*") if p.is_file() and p.suffix.lower() == CSV_SUFFIX),
        key=lambda p: p.name
    )


def find_table_files(code: str, scratch_dir: Union[str, Path]) -> list[Path]:
    """
    Find every extracted CSV file for a table code, sorted by name.

    Args:
        code: Table code (e.g. "tls201")
        scratch_dir: Directory holding the extracted files

    Returns:
        Matching files in load order

    Raises:
        TableLoadError: If no file matches
    """
    matches = [p for p in _extracted_csv_files(scratch_dir) if table_code_for(p) == code]
    if not matches:
        raise TableLoadError(f"No extracted file found for table code '{code}' in {scratch_dir}")
    return matches


def plan_table_files(registry: TableRegistry, scratch_dir: Union[str, Path]) -> dict[str, list[Path]]:
    """
    Match every extracted file to its table before anything is loaded.

    Args:
        registry: Tables to load
        scratch_dir: Directory holding the extracted files

    Returns:
        Dictionary mapping table code to its files, in registry order

    Raises:
        TableLoadError: If a table has no file, or a file belongs to no table
    """
    unmatched = [p.name for p in _extracted_csv_files(scratch_dir) if table_code_for(p) not in registry]
    if unmatched:
        raise TableLoadError(f"Extracted file(s) match no registered table: {', '.join(unmatched)}")

    return {spec.code: find_table_files(spec.code, scratch_dir) for spec in registry}


def apply_defaults(df: pd.DataFrame, spec: TableSpec) -> pd.DataFrame:
    """
    Fill missing cells with the table's registered defaults.

    A defaulted column absent from the file header is added with its default
    in every row. Columns without a registered default keep their missing
    values, which are stored as NULL.
    """
    if not spec.defaults:
        return df
    absent = {column: value for column, value in spec.defaults.items() if column not in df.columns}
    if absent:
        df = df.assign(**absent)
    return df.fillna(value=dict(spec.defaults))


def read_table_chunks(
    csv_path: Union[str, Path],
    spec: TableSpec,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[pd.DataFrame]:
    """
    Parse a CSV file as text in chunks, with defaults applied.

    Only empty fields count as missing; strings such as "NA" (Namibia) or
    "NULL" are kept as values.

    Args:
        csv_path: Path to extracted CSV file
        spec: Table the file belongs to
        chunk_size: Rows per chunk

    Yields:
        DataFrames of string values

    Raises:
        pd.errors.ParserError: If the CSV is malformed
        pd.errors.EmptyDataError: If the file has no header
    """
    reader = pd.read_csv(
        csv_path,
        dtype=str,
        keep_default_na=False,
        na_values=[""],
        encoding="utf-8-sig",
        chunksize=chunk_size
    )
    with reader:
        for chunk in reader:
            chunk.columns = [str(column).strip().lower() for column in chunk.columns]
            yield apply_defaults(chunk, spec)


def load_table(
    spec: TableSpec,
    csv_paths: list[Union[str, Path]],
    conn: sqlite3.Connection,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> int:
    """
    Append every row of the given files to the table's destination.

    Each file is deleted once it has been loaded. Rows already in the
    destination are left alone, so loading twice without a reset duplicates
    the data.

    Args:
        spec: Table to load
        csv_paths: Files to append, in order
        conn: SQLite connection
        chunk_size: Rows per insert batch

    Returns:
        Number of rows appended

    Raises:
        TableLoadError: If a file cannot be parsed or appended; chunks
            appended before the failure are not rolled back
    """
    total_rows = 0

    for csv_path in csv_paths:
        csv_path = Path(csv_path)
        file_rows = 0
        try:
            for chunk in read_table_chunks(csv_path, spec, chunk_size):
                chunk.to_sql(spec.table, conn, if_exists="append", index=False)
                file_rows += len(chunk)
            conn.commit()
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise TableLoadError(f"Failed to parse {csv_path.name} for table {spec.table}: {e}") from e
        except (sqlite3.Error, pd.errors.DatabaseError, ValueError) as e:
            raise TableLoadError(f"Failed to append {csv_path.name} to table {spec.table}: {e}") from e

        csv_path.unlink()
        total_rows += file_rows
        logger.debug("file_loaded", file=csv_path.name, table=spec.table, rows=file_rows)

    logger.info("table_loaded", table=spec.table, files=len(csv_paths), rows=total_rows)
    return total_rows


def load_all_tables(
    registry: TableRegistry,
    scratch_dir: Union[str, Path],
    conn: sqlite3.Connection,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> dict[str, int]:
    """
    Load every registered table in registry order.

    Args:
        registry: Tables to load
        scratch_dir: Directory holding the extracted files
        conn: SQLite connection
        chunk_size: Rows per insert batch

    Returns:
        Dictionary mapping table code to rows appended

    Raises:
        TableLoadError: On the first matching, parse or append failure
    """
    plan = plan_table_files(registry, scratch_dir)

    rows_loaded = {}
    for spec in registry:
        rows_loaded[spec.code] = load_table(spec, plan[spec.code], conn, chunk_size)

    return rows_loaded
