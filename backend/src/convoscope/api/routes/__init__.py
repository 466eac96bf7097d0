"""
API routes for Convoscope.
"""

from convoscope.api.routes import auth, ingestion, summaries

__all__ = [
    "auth",
    "ingestion",
    "summaries",
]
