"""
Registry of the logical tables in a PATSTAT release.

Each table is identified by its short code (``tls801``) and carries its
destination table name, the default value for every column that has one,
and, once merged from an external file, its expected row count.
"""

import json
import re
from dataclasses import dataclass, field, replace
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from .errors import RegistryError

IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class TableSpec:
    """One logical table of the release."""

    code: str
    table: str
    defaults: dict[str, str] = field(default_factory=dict)
    expected_count: Optional[int] = None


class TableRegistry:
    """Ordered, read-only collection of table specs keyed by code."""

    def __init__(self, specs: Iterable[TableSpec]):
        self._specs = tuple(specs)
        self._by_code = {spec.code: spec for spec in self._specs}
        if len(self._by_code) != len(self._specs):
            raise RegistryError("Duplicate table codes in registry")

    def __iter__(self) -> Iterator[TableSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, code: str) -> bool:
        return code in self._by_code

    @property
    def codes(self) -> list[str]:
        return [spec.code for spec in self._specs]

    def get(self, code: str) -> TableSpec:
        try:
            return self._by_code[code]
        except KeyError:
            raise RegistryError(f"Unknown table code: {code}") from None

    def select(self, codes: Iterable[str]) -> "TableRegistry":
        """
        Restrict the registry to the given codes, keeping registry order.

        Raises:
            RegistryError: If any code is not registered
        """
        wanted = {code.strip().lower() for code in codes}
        unknown = sorted(wanted - set(self._by_code))
        if unknown:
            raise RegistryError(f"Unknown table code(s): {', '.join(unknown)}")
        return TableRegistry(spec for spec in self._specs if spec.code in wanted)

    def with_expected_counts(self, counts: dict[str, int]) -> "TableRegistry":
        """
        Return a copy of the registry with expected row counts merged in.

        Raises:
            RegistryError: If counts names a code that is not registered
        """
        unknown = sorted(set(counts) - set(self._by_code))
        if unknown:
            raise RegistryError(f"Expected counts given for unknown table code(s): {', '.join(unknown)}")
        return TableRegistry(
            replace(spec, expected_count=counts[spec.code]) if spec.code in counts else spec
            for spec in self._specs
        )


def _build_spec(entry: Any, position: int) -> TableSpec:
    if not isinstance(entry, dict):
        raise RegistryError(f"Registry entry {position} is not an object")

    code = entry.get("code")
    table = entry.get("table")
    defaults = entry.get("defaults", {})

    if not isinstance(code, str) or not IDENTIFIER_PATTERN.match(code):
        raise RegistryError(f"Registry entry {position} has invalid code: {code!r}")
    if not isinstance(table, str) or not IDENTIFIER_PATTERN.match(table):
        raise RegistryError(f"Table '{code}' has invalid destination name: {table!r}")
    if not table.startswith(code + "_"):
        raise RegistryError(f"Destination table '{table}' does not start with code '{code}_'")
    if not isinstance(defaults, dict):
        raise RegistryError(f"Defaults for table '{code}' must be an object")

    for column, value in defaults.items():
        if not IDENTIFIER_PATTERN.match(column):
            raise RegistryError(f"Table '{code}' has invalid column name: {column!r}")
        if not isinstance(value, str):
            raise RegistryError(
                f"Default for {table}.{column} must be a string, got {type(value).__name__}"
            )

    return TableSpec(code=code, table=table, defaults=dict(defaults))


def build_registry(entries: list[dict[str, Any]]) -> TableRegistry:
    """
    Validate raw registry entries and build a TableRegistry.

    Args:
        entries: List of {"code": str, "table": str, "defaults": {column: str}}

    Returns:
        Validated registry in entry order

    Raises:
        RegistryError: If any entry is malformed or codes repeat
    """
    if not isinstance(entries, list) or not entries:
        raise RegistryError("Registry must be a non-empty list of tables")

    return TableRegistry(_build_spec(entry, i) for i, entry in enumerate(entries))


def load_registry(path: Optional[Union[str, Path]] = None) -> TableRegistry:
    """
    Load the table registry from JSON.

    Args:
        path: Registry file; the packaged data/tables.json when omitted

    Returns:
        Validated TableRegistry

    Raises:
        RegistryError: If the file is missing, not JSON, or invalid
    """
    try:
        if path is None:
            text = (resources.files("patstat_etl") / "data" / "tables.json").read_text(encoding="utf-8")
        else:
            text = Path(path).read_text(encoding="utf-8")
        payload = json.loads(text)
    except OSError as e:
        raise RegistryError(f"Cannot read table registry: {e}") from e
    except json.JSONDecodeError as e:
        raise RegistryError(f"Invalid JSON in table registry: {e}") from e

    if not isinstance(payload, dict) or "tables" not in payload:
        raise RegistryError("Table registry must be an object with a 'tables' list")

    return build_registry(payload["tables"])


def load_expected_counts(path: Union[str, Path]) -> dict[str, int]:
    """
    Load expected row counts from a JSON object {code: count}.

    Raises:
        RegistryError: If the file is unreadable or a count is not a non-negative integer
    """
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise RegistryError(f"Cannot read expected counts file: {e}") from e
    except json.JSONDecodeError as e:
        raise RegistryError(f"Invalid JSON in expected counts file {path}: {e}") from e

    if not isinstance(payload, dict):
        raise RegistryError(f"Expected counts file must hold a JSON object: {path}")

    counts = {}
    for code, count in payload.items():
        # bool is an int subclass
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise RegistryError(f"Expected count for '{code}' must be a non-negative integer, got {count!r}")
        counts[code.strip().lower()] = count

    return counts
