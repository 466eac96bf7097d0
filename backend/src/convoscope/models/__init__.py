"""
Database models for Convoscope.
"""
