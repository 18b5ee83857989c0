"""
Exception hierarchy for the PATSTAT loader.

Every stage of an import raises its own error type. All of them are fatal:
the run stops at the first one.
"""


class PatstatLoaderError(Exception):
    """Base exception for all loader failures."""


class RegistryError(PatstatLoaderError):
    """Raised for an invalid table registry or expected-counts file."""


class IntegrityError(PatstatLoaderError):
    """Raised when an archive digest does not match its sidecar."""


class ExtractionError(PatstatLoaderError):
    """Raised when archives cannot be found or unpacked."""


class SchemaError(PatstatLoaderError):
    """Raised when schema DDL cannot be applied."""


class TableLoadError(PatstatLoaderError):
    """Raised for CSV matching, parsing and append failures."""


class IndexBuildError(PatstatLoaderError):
    """Raised when index DDL cannot be applied."""


class RowCountMismatchError(PatstatLoaderError):
    """Raised when a table's row count differs from its expected count."""

    def __init__(self, table: str, expected: int, actual: int):
        self.table = table
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Row count mismatch for table '{table}': expected {expected}, got {actual}"
        )
