"""Shared fixtures: release archives, sidecars and a fresh database."""

import hashlib
import zipfile
from pathlib import Path

import pytest

from patstat_etl.database import initialize_database
from patstat_etl.registry import TableRegistry, TableSpec
from sample_data import COUNTRY_CSV


def _write_archive(directory, name, members, sidecar=True, digest=None, algorithm="md5"):
    archive = Path(directory) / name
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for member, text in members.items():
            zf.writestr(member, text)

    if sidecar:
        value = digest or hashlib.new(algorithm, archive.read_bytes()).hexdigest()
        archive.with_name(archive.name + ".md5").write_text(f"{value}  {name}\n")

    return archive


@pytest.fixture
def make_archive():
    """Factory writing a zip archive and, by default, its .md5 sidecar."""
    return _write_archive


@pytest.fixture
def release_dir(tmp_path):
    """Release directory holding tls801_country.zip with a correct sidecar."""
    input_dir = tmp_path / "release"
    input_dir.mkdir()
    _write_archive(input_dir, "tls801_country.zip", {"tls801_part01.csv": COUNTRY_CSV})
    return input_dir


@pytest.fixture
def country_registry():
    """Registry with only tls801, defaulting a missing eu_member to "0"."""
    return TableRegistry([
        TableSpec(code="tls801", table="tls801_country", defaults={"eu_member": "0"})
    ])


@pytest.fixture
def conn(tmp_path):
    """Fresh database with the packaged schema applied."""
    connection = initialize_database(tmp_path / "test.sqlite")
    yield connection
    connection.close()
