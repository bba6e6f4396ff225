"""Data ingestion module for Costimator.

Handles importing schedule item sheets.
"""

from costimator.ingestion.schedules import ingest_schedule

__all__ = ["ingest_schedule"]
