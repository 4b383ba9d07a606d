"""Cluster Sink - Database operations for clusters."""

import json
from typing import List, Optional, Sequence

from db.client import queries, get_conn, get_transaction
from db.models.cluster import Cluster
from lib.geo.geometry import LatLng
from services.ingestor import repo as lead_repo


async def insert_cluster(
    name: str,
    boundary: Sequence[LatLng],
    center_lat: float,
    center_lng: float,
    radius_km: float,
    lead_count: int,
    is_auto_generated: bool,
    lead_ids: Optional[List[int]] = None,
    conn=None,
) -> int:
    """Insert a cluster and point its member leads at it (one transaction).

    Pass conn to join an open transaction. Returns the new cluster ID.
    """
    if conn is not None:
        return await _insert_cluster(
            conn, name, boundary, center_lat, center_lng, radius_km, lead_count, is_auto_generated, lead_ids
        )
    async with get_transaction() as conn:
        return await _insert_cluster(
            conn, name, boundary, center_lat, center_lng, radius_km, lead_count, is_auto_generated, lead_ids
        )


async def _insert_cluster(
    conn, name, boundary, center_lat, center_lng, radius_km, lead_count, is_auto_generated, lead_ids
) -> int:
    cluster_id = await queries.insert_cluster(
        conn,
        name=name,
        boundary=json.dumps([p.model_dump() for p in boundary]),
        center_lat=center_lat,
        center_lng=center_lng,
        radius_km=radius_km,
        lead_count=lead_count,
        is_auto_generated=is_auto_generated,
    )
    if lead_ids:
        await lead_repo.assign_leads_to_cluster(lead_ids, cluster_id, conn=conn)
    return cluster_id


async def delete_auto_generated_clusters(conn=None) -> int:
    """Detach leads from auto-generated clusters and delete them. Returns clusters deleted.

    Pass conn to join an open transaction.
    """
    if conn is not None:
        await lead_repo.clear_auto_cluster_assignments(conn=conn)
        return await queries.delete_auto_generated_clusters(conn)
    async with get_transaction() as conn:
        await lead_repo.clear_auto_cluster_assignments(conn=conn)
        return await queries.delete_auto_generated_clusters(conn)


async def get_cluster_by_id(cluster_id: int) -> Optional[Cluster]:
    async with get_conn() as conn:
        result = await queries.get_cluster_by_id(conn, cluster_id=cluster_id)
        if result:
            return Cluster.model_validate(dict(result))
        return None


async def get_clusters() -> List[Cluster]:
    async with get_conn() as conn:
        results = await queries.get_clusters(conn)
        return [Cluster.model_validate(dict(row)) for row in results]
