"""
Database layer for Convoscope.
"""
