"""
Ingestion of GPS observations sent by the tracking app.
"""

from ingestion.service import LocationIngestionService

__all__ = ["LocationIngestionService"]
