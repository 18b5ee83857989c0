"""Command-line application for the PATSTAT loader."""

from patstat_etl import __version__

__all__ = ["__version__"]
