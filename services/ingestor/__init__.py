"""
Ingestor Service - Store discovered lead candidates.

Usage:
    from services.ingestor import Service, DiscoveredCandidate

    service = Service()
    result = await service.ingest_candidates(candidates)
    print(result.inserted, result.skipped, result.errors)
"""

from services.ingestor.models import DiscoveredCandidate, IngestResult
from services.ingestor.service import IService, Service, ingest_candidates

__all__ = [
    "IService",
    "Service",
    "ingest_candidates",
    "DiscoveredCandidate",
    "IngestResult",
]
