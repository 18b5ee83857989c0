"""
Import orchestrator for a PATSTAT release.

Runs the stages strictly in order and stops at the first error:
verify archives -> create schema -> extract -> load tables -> build indexes
-> verify row counts. The scratch directory is removed whether the run
succeeds or fails, unless keep_scratch is set.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from .database import build_indexes, initialize_database, reset_database
from .errors import ExtractionError, SchemaError
from .extract import (
    DEFAULT_ARCHIVE_PATTERN,
    create_scratch_dir,
    extract_archives,
    find_archives,
    remove_scratch_dir,
)
from .hashing import DEFAULT_ALGORITHM, DEFAULT_SIDECAR_SUFFIX, verify_archives
from .load_tables import DEFAULT_CHUNK_SIZE, load_all_tables, table_code_for
from .registry import TableRegistry
from .validators import validate_registry_against_schema, verify_row_counts

logger = structlog.get_logger(__name__)


@dataclass
class LoaderSettings:
    """Settings for one import run."""

    input_dir: Union[str, Path]
    db_path: Union[str, Path] = "patstat.sqlite"
    schema_path: Optional[Union[str, Path]] = None
    indexes_path: Optional[Union[str, Path]] = None
    archive_pattern: str = DEFAULT_ARCHIVE_PATTERN
    digest_algorithm: str = DEFAULT_ALGORITHM
    sidecar_suffix: str = DEFAULT_SIDECAR_SUFFIX
    chunk_size: int = DEFAULT_CHUNK_SIZE
    scratch_parent: Optional[Union[str, Path]] = None
    keep_scratch: bool = False
    overwrite: bool = False
    tables: Optional[list[str]] = None


def run_import(settings: LoaderSettings, registry: TableRegistry) -> dict[str, Any]:
    """
    Build the database from the release archives.

    Args:
        settings: Run settings
        registry: Tables to load, with expected counts where known

    Returns:
        Import report dictionary with:
        - status: "success"
        - database: str
        - archives: {filename: digest}
        - digest_algorithm: str
        - tables: {code: {table: str, rows_loaded: int, verified_count: int | None}}
        - started_at, finished_at: ISO timestamps

    Raises:
        PatstatLoaderError: Subclass naming the stage that failed
    """
    started_at = datetime.now().isoformat()

    archives = find_archives(settings.input_dir, settings.archive_pattern)
    logger.info("archives_found", count=len(archives), input_dir=str(settings.input_dir))

    if settings.tables:
        registry = registry.select(settings.tables)
        archives = [a for a in archives if table_code_for(a) in registry]
        if not archives:
            raise ExtractionError(f"No archives for table(s) {', '.join(registry.codes)} in {settings.input_dir}")
        logger.info("archives_selected", count=len(archives), tables=registry.codes)

    # Nothing is extracted or written until every archive checks out
    digests = verify_archives(archives, settings.digest_algorithm, settings.sidecar_suffix)

    db_path = Path(settings.db_path)
    if settings.overwrite:
        reset_database(db_path)
    elif db_path.exists():
        raise SchemaError(f"Database already exists: {db_path} (use overwrite to replace it)")

    conn = initialize_database(db_path, settings.schema_path)
    scratch_dir = None
    try:
        validate_registry_against_schema(conn, registry)

        scratch_dir = create_scratch_dir(settings.scratch_parent)
        extract_archives(archives, scratch_dir)

        rows_loaded = load_all_tables(registry, scratch_dir, conn, settings.chunk_size)
        build_indexes(conn, settings.indexes_path)
        verified = verify_row_counts(conn, registry)
    finally:
        conn.close()
        if scratch_dir is not None:
            if settings.keep_scratch:
                logger.info("scratch_kept", path=str(scratch_dir))
            else:
                remove_scratch_dir(scratch_dir)

    tables = {
        spec.code: {
            "table": spec.table,
            "rows_loaded": rows_loaded[spec.code],
            "verified_count": verified.get(spec.code),
        }
        for spec in registry
    }

    logger.info("import_complete", db=str(db_path), tables=len(tables))

    return {
        "status": "success",
        "database": str(db_path),
        "digest_algorithm": settings.digest_algorithm,
        "archives": digests,
        "tables": tables,
        "started_at": started_at,
        "finished_at": datetime.now().isoformat(),
    }
