"""Convert provider places into lead candidates."""

from typing import List, Optional

from services.discovery.constants import LeadStatus, LeadType, SOURCE_GOOGLE_PLACES
from services.discovery.places import PlaceResult
from services.ingestor.models import DiscoveredCandidate


def extract_city(formatted_address: str) -> str:
    """Pull the city out of a Places formatted_address.

    Ontario addresses look like "123 Road, City, ON N0B 1A0, Canada", so the
    city is the second part when there are at least three.
    """
    parts = [p.strip() for p in formatted_address.split(",")]
    if len(parts) >= 3:
        return parts[1]
    if len(parts) >= 2:
        return parts[0]
    return formatted_address


def infer_lead_type(name: str, type_tags: Optional[List[str]] = None) -> str:
    """Guess the lead type from the place name, then its type tags."""
    lower = name.lower()
    tags = type_tags or []

    if "market" in lower:
        return LeadType.FARMERS_MARKET
    if "roadside" in lower or "stand" in lower:
        return LeadType.ROADSIDE_STAND
    if any(word in lower for word in ("farm", "orchard", "vineyard", "ranch", "acres")):
        return LeadType.FARM
    if "store" in tags or "grocery_or_supermarket" in tags:
        return LeadType.RETAIL_STORE
    return LeadType.FARM


def source_detail(cell_id: int, depth: int) -> str:
    return f"Discovery grid cell {cell_id} [depth={depth}]"


def to_candidate(place: PlaceResult, cell_id: int, depth: int, region: str, province: str) -> DiscoveredCandidate:
    """Build an ingestable candidate from a place found in a cell."""
    address = place.address or ""
    return DiscoveredCandidate(
        external_id=place.external_id,
        name=place.name,
        type=infer_lead_type(place.name, place.type_tags),
        address=address,
        city=extract_city(address) if address else "",
        postal_code=place.postal_code or "",
        country_code=place.country_code or "",
        region=region,
        province=province,
        latitude=place.lat,
        longitude=place.lng,
        source=SOURCE_GOOGLE_PLACES,
        source_detail=source_detail(cell_id, depth),
        status=LeadStatus.NEW_LEAD,
        discovery_cell_id=cell_id,
    )
