"""
Candidate and result models for lead ingestion.
"""

from typing import Optional

from pydantic import BaseModel, Field

from services.discovery.constants import LeadStatus, LeadType


class DiscoveredCandidate(BaseModel):
    """A lead found by discovery, before it is stored.

    Converted 1:1 into a lead row; deduplicated by external_id (the
    provider's place id) against the whole lead store.
    """

    # Required identifiers
    external_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: str = LeadType.FARM

    # Location
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country_code: str = ""
    region: str = ""
    province: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Provenance
    source: str
    source_detail: str = ""
    discovery_cell_id: Optional[int] = None

    status: str = LeadStatus.NEW_LEAD


class IngestResult(BaseModel):
    """Counts from one ingest_candidates call."""

    inserted: int = 0
    skipped: int = 0    # already known, duplicate in batch, or failed insert
    errors: int = 0     # subset of skipped that raised

    def to_dict(self) -> dict:
        return {
            "inserted": self.inserted,
            "skipped": self.skipped,
            "errors": self.errors,
        }
