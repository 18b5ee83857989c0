"""Unit tests for the table registry."""

import json

import pytest

from patstat_etl.errors import RegistryError
from patstat_etl.registry import (
    TableRegistry,
    TableSpec,
    build_registry,
    load_expected_counts,
    load_registry,
)


def test_packaged_registry_loads_in_release_order():
    registry = load_registry()

    assert registry.codes[0] == "tls201"
    assert registry.get("tls801").table == "tls801_country"
    assert registry.get("tls201").defaults["appln_filing_date"] == "9999-12-31"
    assert all(spec.table.startswith(spec.code + "_") for spec in registry)
    assert all(spec.expected_count is None for spec in registry)


def test_build_registry_rejects_duplicate_codes():
    entries = [
        {"code": "tls801", "table": "tls801_country"},
        {"code": "tls801", "table": "tls801_other"},
    ]

    with pytest.raises(RegistryError, match="Duplicate"):
        build_registry(entries)


@pytest.mark.parametrize("entry", [
    {"code": "tls801", "table": "country"},
    {"code": "TLS801", "table": "tls801_country"},
    {"code": "tls801", "table": "tls801_country; DROP TABLE x"},
    {"code": "tls801", "table": "tls801_country", "defaults": {"eu_member": 0}},
    {"code": "tls801", "table": "tls801_country", "defaults": ["eu_member"]},
])
def test_build_registry_rejects_malformed_entries(entry):
    with pytest.raises(RegistryError):
        build_registry([entry])


def test_build_registry_rejects_empty_list():
    with pytest.raises(RegistryError):
        build_registry([])


def test_load_registry_reads_custom_file(tmp_path):
    registry_file = tmp_path / "tables.json"
    registry_file.write_text(json.dumps({
        "tables": [{"code": "tls801", "table": "tls801_country", "defaults": {"eu_member": "0"}}]
    }))

    registry = load_registry(registry_file)

    assert registry.codes == ["tls801"]
    assert registry.get("tls801").defaults == {"eu_member": "0"}


def test_load_registry_raises_for_invalid_json(tmp_path):
    registry_file = tmp_path / "tables.json"
    registry_file.write_text("{not json")

    with pytest.raises(RegistryError):
        load_registry(registry_file)


def test_select_keeps_registry_order_and_rejects_unknown_codes():
    registry = load_registry()

    selected = registry.select(["TLS801", "tls201"])

    assert selected.codes == ["tls201", "tls801"]
    with pytest.raises(RegistryError, match="tls999"):
        registry.select(["tls999"])


def test_with_expected_counts_merges_counts():
    registry = TableRegistry([
        TableSpec(code="tls801", table="tls801_country"),
        TableSpec(code="tls904", table="tls904_nuts"),
    ])

    merged = registry.with_expected_counts({"tls801": 3})

    assert merged.get("tls801").expected_count == 3
    assert merged.get("tls904").expected_count is None
    # original registry is unchanged
    assert registry.get("tls801").expected_count is None


def test_with_expected_counts_rejects_unknown_code():
    registry = TableRegistry([TableSpec(code="tls801", table="tls801_country")])

    with pytest.raises(RegistryError, match="tls999"):
        registry.with_expected_counts({"tls999": 1})


def test_load_expected_counts_reads_json_object(tmp_path):
    counts_file = tmp_path / "counts.json"
    counts_file.write_text(json.dumps({"tls801": 3, "TLS904": 0}))

    assert load_expected_counts(counts_file) == {"tls801": 3, "tls904": 0}


@pytest.mark.parametrize("payload", [{"tls801": -1}, {"tls801": "3"}, {"tls801": True}, [3]])
def test_load_expected_counts_rejects_invalid_values(tmp_path, payload):
    counts_file = tmp_path / "counts.json"
    counts_file.write_text(json.dumps(payload))

    with pytest.raises(RegistryError):
        load_expected_counts(counts_file)


def test_load_expected_counts_raises_for_missing_file(tmp_path):
    with pytest.raises(RegistryError):
        load_expected_counts(tmp_path / "missing.json")
