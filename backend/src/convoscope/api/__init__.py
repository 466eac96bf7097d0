"""
HTTP API for Convoscope.
"""
