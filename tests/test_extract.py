"""Unit tests for archive discovery and extraction."""

import pytest

from patstat_etl.errors import ExtractionError
from patstat_etl.extract import (
    SCRATCH_PREFIX,
    create_scratch_dir,
    extract_archives,
    find_archives,
    remove_scratch_dir,
)


def test_find_archives_returns_sorted_zip_files(tmp_path, make_archive):
    make_archive(tmp_path, "tls801_country.zip", {"tls801_part01.csv": "x\n"})
    make_archive(tmp_path, "tls201_part01.zip", {"tls201_part01.csv": "x\n"})

    archives = find_archives(tmp_path)

    # sidecars are not archives
    assert [p.name for p in archives] == ["tls201_part01.zip", "tls801_country.zip"]


def test_find_archives_raises_for_missing_directory(tmp_path):
    with pytest.raises(ExtractionError):
        find_archives(tmp_path / "does-not-exist")


def test_find_archives_raises_when_nothing_matches(tmp_path):
    (tmp_path / "readme.txt").write_text("no archives here")

    with pytest.raises(ExtractionError, match="No archives"):
        find_archives(tmp_path)


def test_create_scratch_dir_is_unique_per_call(tmp_path):
    first = create_scratch_dir(tmp_path)
    second = create_scratch_dir(tmp_path)

    assert first != second
    assert first.is_dir() and second.is_dir()
    assert first.name.startswith(SCRATCH_PREFIX)


def test_extract_archives_unpacks_every_archive(tmp_path, make_archive):
    input_dir = tmp_path / "release"
    input_dir.mkdir()
    first = make_archive(input_dir, "tls201_part01.zip", {"tls201_part01.csv": "appln_id\n1\n"})
    second = make_archive(input_dir, "tls801_country.zip", {"tls801_part01.csv": "ctry_code\nAT\n"})
    scratch_dir = create_scratch_dir(tmp_path)

    extracted = extract_archives([first, second], scratch_dir)

    assert [p.name for p in extracted] == ["tls201_part01.csv", "tls801_part01.csv"]
    assert (scratch_dir / "tls801_part01.csv").read_text() == "ctry_code\nAT\n"


def test_extract_archives_raises_for_corrupt_archive(tmp_path):
    corrupt = tmp_path / "tls801_country.zip"
    corrupt.write_bytes(b"this is not a zip archive")
    scratch_dir = create_scratch_dir(tmp_path)

    with pytest.raises(ExtractionError, match="tls801_country.zip"):
        extract_archives([corrupt], scratch_dir)


def test_remove_scratch_dir_deletes_contents(tmp_path):
    scratch_dir = create_scratch_dir(tmp_path)
    (scratch_dir / "left_over.csv").write_text("x\n")

    remove_scratch_dir(scratch_dir)

    assert not scratch_dir.exists()


def test_extract_archives_rejects_member_name_collision(tmp_path, make_archive):
    input_dir = tmp_path / "release"
    input_dir.mkdir()
    first = make_archive(input_dir, "tls201_a.zip", {"tls201_part01.csv": "appln_id\n1\n"})
    second = make_archive(input_dir, "tls201_b.zip", {"tls201_part01.csv": "appln_id\n2\n"})
    scratch_dir = create_scratch_dir(tmp_path)

    with pytest.raises(ExtractionError, match="both contain tls201_part01.csv"):
        extract_archives([first, second], scratch_dir)

    assert (scratch_dir / "tls201_part01.csv").read_text() == "appln_id\n1\n"
