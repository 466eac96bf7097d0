"""
Service layer: ingestion, grouping and cascade deletion.
"""
