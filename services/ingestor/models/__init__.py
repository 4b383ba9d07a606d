"""
Ingestor data models.
"""

from services.ingestor.models.candidate import DiscoveredCandidate, IngestResult

__all__ = [
    "DiscoveredCandidate",
    "IngestResult",
]
