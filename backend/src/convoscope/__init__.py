"""
Convoscope - conversation summary and insight dashboard backend.
"""

__version__ = "0.1.0"
