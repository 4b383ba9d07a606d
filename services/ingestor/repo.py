"""
Lead Store - Database operations for discovered leads.
"""

from typing import List, Optional

from db.client import queries, get_conn
from db.models.lead import Lead
from services.ingestor.models.candidate import DiscoveredCandidate


async def find_lead_by_external_id(external_id: str) -> Optional[Lead]:
    """Look up a lead by provider place id. Returns None if unknown."""
    async with get_conn() as conn:
        result = await queries.get_lead_by_external_id(conn, external_id=external_id)
        if result:
            return Lead.model_validate(dict(result))
        return None


async def insert_lead(candidate: DiscoveredCandidate) -> Optional[int]:
    """Insert a candidate as a new lead.

    Returns the lead id, or None when the external_id already exists
    (ON CONFLICT DO NOTHING - a concurrent writer won).
    """
    async with get_conn() as conn:
        return await queries.insert_lead(
            conn,
            external_id=candidate.external_id,
            name=candidate.name,
            type=candidate.type,
            address=candidate.address,
            city=candidate.city,
            postal_code=candidate.postal_code,
            country_code=candidate.country_code,
            region=candidate.region,
            province=candidate.province,
            latitude=candidate.latitude,
            longitude=candidate.longitude,
            source=candidate.source,
            source_detail=candidate.source_detail,
            discovery_cell_id=candidate.discovery_cell_id,
            status=candidate.status,
        )


async def collect_geolocated_leads() -> List[Lead]:
    """All leads that have coordinates, ordered by id."""
    async with get_conn() as conn:
        results = await queries.get_geolocated_leads(conn)
        return [Lead.model_validate(dict(row)) for row in results]


async def update_lead(
    lead_id: int,
    name: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    address: Optional[str] = None,
    city: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> None:
    """Patch a lead. Fields left as None are unchanged."""
    async with get_conn() as conn:
        await queries.update_lead_fields(
            conn,
            lead_id=lead_id,
            name=name,
            type=type,
            status=status,
            address=address,
            city=city,
            latitude=latitude,
            longitude=longitude,
        )


async def assign_leads_to_cluster(lead_ids: List[int], cluster_id: int, conn=None) -> None:
    """Point leads at a cluster. Pass conn to join an open transaction."""
    if not lead_ids:
        return
    if conn is not None:
        await queries.assign_leads_to_cluster(conn, lead_ids=lead_ids, cluster_id=cluster_id)
        return
    async with get_conn() as conn:
        await queries.assign_leads_to_cluster(conn, lead_ids=lead_ids, cluster_id=cluster_id)


async def clear_auto_cluster_assignments(conn=None) -> None:
    """Detach leads from every auto-generated cluster."""
    if conn is not None:
        await queries.clear_auto_cluster_assignments(conn)
        return
    async with get_conn() as conn:
        await queries.clear_auto_cluster_assignments(conn)
