"""
Archive digest utilities for integrity verification.

Each release archive ships with a sidecar file holding its reference digest
(``tls201_part01.zip`` -> ``tls201_part01.zip.md5``). Archives are verified
before anything is extracted.
"""

import hashlib
import re
from pathlib import Path
from typing import Union

import structlog

from .errors import IntegrityError

logger = structlog.get_logger(__name__)

DEFAULT_ALGORITHM = "md5"
DEFAULT_SIDECAR_SUFFIX = ".md5"
HEX_DIGEST_PATTERN = re.compile(r"^[0-9a-f]+$")

# 1 MiB reads; release archives run to several GB
CHUNK_SIZE = 1024 * 1024


def compute_digest(file_path: Union[str, Path], algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Compute the hex digest of a file.

    Args:
        file_path: Path to file to hash
        algorithm: Any name accepted by hashlib.new (e.g. "md5", "sha256")

    Returns:
        Lower-case hexadecimal digest string

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If path is not a file or algorithm is unknown
        PermissionError: If file cannot be read
        IOError: If file read fails

    Example:
        >>> len(compute_digest("tls801_country.zip"))
        32
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    if not file_path.is_file():
        raise ValueError(f"Path is not a file: {file_path}")

    try:
        digest = hashlib.new(algorithm)
    except ValueError as e:
        raise ValueError(f"Unsupported digest algorithm: {algorithm}") from e

    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                digest.update(chunk)
    except PermissionError as e:
        raise PermissionError(f"Cannot read file (permission denied): {file_path}") from e
    except IOError as e:
        raise IOError(f"Failed to read file: {file_path}") from e

    return digest.hexdigest()


def sidecar_path(archive_path: Union[str, Path], suffix: str = DEFAULT_SIDECAR_SUFFIX) -> Path:
    """Return the sidecar digest path for an archive (archive name plus suffix)."""
    archive_path = Path(archive_path)
    return archive_path.with_name(archive_path.name + suffix)


def read_sidecar_digest(path: Union[str, Path]) -> str:
    """
    Read the reference digest from a sidecar file.

    Both a bare digest and the ``md5sum`` layout ("<digest>  <filename>")
    are accepted; the first whitespace-delimited token is the digest.

    Args:
        path: Path to sidecar file

    Returns:
        Lower-case hexadecimal digest

    Raises:
        IntegrityError: If the sidecar is missing, unreadable, empty or not hex
    """
    path = Path(path)
    if not path.is_file():
        raise IntegrityError(f"Sidecar digest file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise IntegrityError(f"Cannot read sidecar digest file: {path}") from e

    tokens = content.split()
    if not tokens:
        raise IntegrityError(f"Sidecar digest file is empty: {path}")

    expected = tokens[0].lower()
    if not HEX_DIGEST_PATTERN.match(expected):
        raise IntegrityError(f"Sidecar digest is not hexadecimal in {path}: {tokens[0]}")

    return expected


def verify_archive(
    archive_path: Union[str, Path],
    algorithm: str = DEFAULT_ALGORITHM,
    suffix: str = DEFAULT_SIDECAR_SUFFIX
) -> str:
    """
    Verify that an archive's digest matches its sidecar.

    Comparison is case-insensitive.

    Args:
        archive_path: Path to archive
        algorithm: Digest algorithm used by the sidecar
        suffix: Sidecar file suffix

    Returns:
        The verified digest

    Raises:
        IntegrityError: If the digests differ or the sidecar is unusable
    """
    archive_path = Path(archive_path)
    expected = read_sidecar_digest(sidecar_path(archive_path, suffix))

    try:
        actual = compute_digest(archive_path, algorithm)
    except (OSError, ValueError) as e:
        raise IntegrityError(f"Cannot compute digest of {archive_path}: {e}") from e

    if actual.lower() != expected:
        raise IntegrityError(
            f"Digest mismatch for {archive_path.name}: expected {expected}, got {actual}"
        )

    logger.info("archive_verified", archive=archive_path.name, algorithm=algorithm)
    return actual


def verify_archives(
    archive_paths: list[Union[str, Path]],
    algorithm: str = DEFAULT_ALGORITHM,
    suffix: str = DEFAULT_SIDECAR_SUFFIX
) -> dict[str, str]:
    """
    Verify every archive, stopping at the first failure.

    Args:
        archive_paths: Archives to verify
        algorithm: Digest algorithm used by the sidecars
        suffix: Sidecar file suffix

    Returns:
        Dictionary mapping archive filename to verified digest

    Raises:
        IntegrityError: On the first archive that fails verification
    """
    results = {}
    for archive_path in sorted(Path(p) for p in archive_paths):
        results[archive_path.name] = verify_archive(archive_path, algorithm, suffix)

    return results
