"""Geospatial proximity enrichment engine.

Answers "what does dataset X contain at or near point P within
radius R?" across many independently operated feature services:
resilient JSON fetching, CRS normalisation, point/polyline/polygon
distance, containment classification, cross-query deduplication and
a concurrent multi-source orchestrator.
"""

__version__ = "0.1.0"
