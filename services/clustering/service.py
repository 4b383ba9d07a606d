"""Clustering Service - DBSCAN lead clusters and manual polygon clusters."""

import os
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict

from db.client import get_transaction
from db.models.lead import Lead
from lib.geo.dbscan import DEFAULT_EPSILON_KM, DEFAULT_MIN_POINTS, GeoPoint, dbscan
from lib.geo.geometry import (
    LatLng,
    bounding_radius,
    convex_hull,
    mean_centroid,
    point_in_polygon,
    polygon_centroid,
    validate_coordinates,
)
from services.clustering import repo
from services.discovery.errors import GeometryError
from services.ingestor import repo as lead_repo

MIN_RADIUS_KM = 1.0


class ClusteringConfig(BaseModel):
    """DBSCAN parameters."""
    model_config = ConfigDict(frozen=True)

    epsilon_km: float = DEFAULT_EPSILON_KM
    min_points: int = DEFAULT_MIN_POINTS

    @classmethod
    def from_env(cls) -> "ClusteringConfig":
        return cls(
            epsilon_km=float(os.getenv("CLUSTER_EPSILON_KM", str(DEFAULT_EPSILON_KM))),
            min_points=int(os.getenv("CLUSTER_MIN_POINTS", str(DEFAULT_MIN_POINTS))),
        )


class ClusterDraft(BaseModel):
    """A cluster computed but not yet persisted."""
    name: str
    boundary: List[LatLng]
    center_lat: float
    center_lng: float
    radius_km: float
    lead_ids: List[int]

    @property
    def lead_count(self) -> int:
        return len(self.lead_ids)


class ClusteringResult(BaseModel):
    """Outcome of generate_clusters."""
    leads_considered: int = 0
    leads_clustered: int = 0
    clusters_removed: int = 0
    drafts: List[ClusterDraft] = []
    cluster_ids: List[int] = []


def draft_from_points(name: str, points: Sequence[LatLng], lead_ids: List[int]) -> ClusterDraft:
    """Centroid = mean of members, radius floored at 1 km, boundary = convex hull."""
    center = mean_centroid(points)
    return ClusterDraft(
        name=name,
        boundary=convex_hull(points),
        center_lat=center.lat,
        center_lng=center.lng,
        radius_km=bounding_radius(center, points, floor_km=MIN_RADIUS_KM),
        lead_ids=lead_ids,
    )


def build_clusters(leads: Sequence[Lead], epsilon_km: float, min_points: int) -> List[ClusterDraft]:
    """Run DBSCAN over leads with valid coordinates. Pure - no persistence."""
    usable = [lead for lead in leads if validate_coordinates(lead.latitude, lead.longitude)]
    by_id = {str(lead.id): lead for lead in usable}

    points = [
        GeoPoint(id=str(lead.id), lat=lead.latitude, lng=lead.longitude, city=lead.city or None)
        for lead in usable
    ]
    drafts = []
    for group in dbscan(points, epsilon_km=epsilon_km, min_points=min_points):
        members = [by_id[pid] for pid in group.point_ids]
        coords = [LatLng(lat=m.latitude, lng=m.longitude) for m in members]
        drafts.append(draft_from_points(group.name, coords, [m.id for m in members]))
    return drafts


class IService(ABC):
    """Clustering Service Interface."""

    @abstractmethod
    async def generate_clusters(
        self,
        epsilon_km: Optional[float] = None,
        min_points: Optional[int] = None,
        replace_existing: bool = True,
        dry_run: bool = False,
    ) -> ClusteringResult:
        """
        Cluster all geo-located leads with DBSCAN and persist one cluster per group.

        Args:
            epsilon_km: Neighbourhood radius (defaults to config)
            min_points: Neighbours needed for a core point, including itself
            replace_existing: Delete previous auto-generated clusters first
            dry_run: Compute drafts only, write nothing

        Returns:
            ClusteringResult
        """
        pass

    @abstractmethod
    async def create_polygon_cluster(self, name: str, boundary: List[LatLng]) -> int:
        """Create a manual cluster from a drawn polygon and assign the leads inside it. Returns cluster id."""
        pass


class Service(IService):
    def __init__(self, config: Optional[ClusteringConfig] = None) -> None:
        self.config = config or ClusteringConfig.from_env()

    async def generate_clusters(
        self,
        epsilon_km: Optional[float] = None,
        min_points: Optional[int] = None,
        replace_existing: bool = True,
        dry_run: bool = False,
    ) -> ClusteringResult:
        eps = epsilon_km if epsilon_km is not None else self.config.epsilon_km
        min_pts = min_points if min_points is not None else self.config.min_points

        leads = await lead_repo.collect_geolocated_leads()
        drafts = build_clusters(leads, eps, min_pts)
        result = ClusteringResult(
            leads_considered=len(leads),
            leads_clustered=sum(d.lead_count for d in drafts),
            drafts=drafts,
        )
        logger.info(
            f"DBSCAN (eps={eps}km, min_points={min_pts}): {len(drafts)} clusters "
            f"covering {result.leads_clustered}/{len(leads)} leads"
        )

        if dry_run:
            return result

        # Delete and re-insert in one transaction: a failure keeps the previous clusters
        async with get_transaction() as conn:
            if replace_existing:
                result.clusters_removed = await repo.delete_auto_generated_clusters(conn=conn)

            for draft in drafts:
                cluster_id = await repo.insert_cluster(
                    name=draft.name,
                    boundary=draft.boundary,
                    center_lat=draft.center_lat,
                    center_lng=draft.center_lng,
                    radius_km=draft.radius_km,
                    lead_count=draft.lead_count,
                    is_auto_generated=True,
                    lead_ids=draft.lead_ids,
                    conn=conn,
                )
                result.cluster_ids.append(cluster_id)

        if replace_existing:
            logger.info(f"Removed {result.clusters_removed} auto-generated clusters")
        return result

    async def create_polygon_cluster(self, name: str, boundary: List[LatLng]) -> int:
        if len(boundary) < 3:
            raise GeometryError(f"Polygon needs at least 3 vertices, got {len(boundary)}")
        for p in boundary:
            if not validate_coordinates(p.lat, p.lng):
                raise GeometryError(f"Invalid polygon vertex: {p.lat}, {p.lng}")

        center = polygon_centroid(boundary)
        radius = bounding_radius(center, boundary, floor_km=MIN_RADIUS_KM)

        leads = await lead_repo.collect_geolocated_leads()
        members = [
            lead.id for lead in leads
            if point_in_polygon(LatLng(lat=lead.latitude, lng=lead.longitude), boundary)
        ]

        cluster_id = await repo.insert_cluster(
            name=name,
            boundary=boundary,
            center_lat=center.lat,
            center_lng=center.lng,
            radius_km=radius,
            lead_count=len(members),
            is_auto_generated=False,
            lead_ids=members,
        )
        logger.info(f"Created cluster {cluster_id} '{name}' with {len(members)} leads")
        return cluster_id
