"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from convoscope.db.repositories.base import BaseRepository
from convoscope.db.repositories.insight import InsightRepository
from convoscope.db.repositories.summary import SummaryRepository

__all__ = [
    "BaseRepository",
    "InsightRepository",
    "SummaryRepository",
]
