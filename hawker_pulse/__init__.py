"""
Hawker Pulse

Batch ingestion of Singapore open geospatial datasets and kernel density
scoring of hawker centre opportunity per URA subzone.
"""

__version__ = "0.1.0"
