"""
Archive discovery and extraction into a per-run scratch directory.
"""

import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

import structlog

from .errors import ExtractionError

logger = structlog.get_logger(__name__)

DEFAULT_ARCHIVE_PATTERN = "*.zip"
SCRATCH_PREFIX = "patstat-"


def find_archives(input_dir: Union[str, Path], pattern: str = DEFAULT_ARCHIVE_PATTERN) -> list[Path]:
    """
    List release archives under the input root, sorted by name.

    Args:
        input_dir: Directory containing the release archives
        pattern: Glob pattern matched against the directory

    Returns:
        Sorted list of archive paths

    Raises:
        ExtractionError: If input_dir is missing or holds no matching archive
    """
    input_path = Path(input_dir)
    if not input_path.is_dir():
        raise ExtractionError(f"Input directory not found: {input_dir}")

    archives = sorted(p for p in input_path.glob(pattern) if p.is_file())
    if not archives:
        raise ExtractionError(f"No archives matching '{pattern}' in {input_dir}")

    return archives


def create_scratch_dir(parent: Optional[Union[str, Path]] = None) -> Path:
    """Create a uniquely named scratch directory for one run."""
    scratch_dir = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=parent))
    logger.debug("scratch_created", path=str(scratch_dir))
    return scratch_dir


def remove_scratch_dir(scratch_dir: Union[str, Path]) -> None:
    """Remove a scratch directory and everything left in it."""
    shutil.rmtree(scratch_dir, ignore_errors=True)
    logger.debug("scratch_removed", path=str(scratch_dir))


def extract_archives(archive_paths: list[Union[str, Path]], scratch_dir: Union[str, Path]) -> list[Path]:
    """
    Unpack every archive into the scratch directory.

    Args:
        archive_paths: Archives to extract, in order
        scratch_dir: Destination directory

    Returns:
        Sorted list of extracted CSV files

    Raises:
        ExtractionError: If any archive is unreadable or corrupt, or two
            archives contain a member with the same name
    """
    scratch_path = Path(scratch_dir)
    extracted_from = {}

    for archive_path in archive_paths:
        archive_path = Path(archive_path)
        try:
            # CRC of every member is checked while it is written out
            with zipfile.ZipFile(archive_path) as zf:
                members = [info.filename for info in zf.infolist() if not info.is_dir()]
                for member in members:
                    if member in extracted_from:
                        raise ExtractionError(
                            f"{archive_path.name} and {extracted_from[member]} both contain {member}"
                        )
                zf.extractall(scratch_path)
                extracted_from.update(dict.fromkeys(members, archive_path.name))
        except zipfile.BadZipFile as e:
            raise ExtractionError(f"Not a valid zip archive: {archive_path.name}") from e
        except OSError as e:
            raise ExtractionError(f"Failed to extract {archive_path.name}: {e}") from e

        logger.info("archive_extracted", archive=archive_path.name)

    return sorted(
        (p for p in scratch_path.rglob("*") if p.is_file() and p.suffix.lower() == ".csv"),
        key=lambda p: p.name
    )
