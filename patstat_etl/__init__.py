"""
ETL (Extract, Transform, Load) module for PATSTAT bulk data ingestion.

This module provides:
- Archive digest verification against sidecar files
- Archive extraction into a per-run scratch directory
- CSV ingestion into SQLite database with per-column defaults
- Index creation and row count verification
"""

__version__ = "0.1.0"
