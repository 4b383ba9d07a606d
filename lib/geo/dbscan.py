"""
DBSCAN over geographic points.

Neighbourhoods are measured with the haversine distance, so epsilon is in
kilometers. Output is deterministic for a fixed input order: clusters are
numbered in the order they are discovered and list their members in input
order.
"""

from collections import Counter, deque
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from lib.geo.geometry import haversine_km

NOISE = -1
UNVISITED = -2

DEFAULT_EPSILON_KM = 15.0
DEFAULT_MIN_POINTS = 3


class GeoPoint(BaseModel):
    """A point to cluster. id is whatever the caller uses to find it again."""
    model_config = ConfigDict(frozen=True)

    id: str
    lat: float
    lng: float
    city: Optional[str] = None


class Cluster(BaseModel):
    """One DBSCAN group: a display name and member point ids."""
    name: str
    point_ids: List[str]


def _region_query(points: Sequence[GeoPoint], index: int, epsilon_km: float) -> List[int]:
    p = points[index]
    return [
        i for i, q in enumerate(points)
        if haversine_km(p.lat, p.lng, q.lat, q.lng) <= epsilon_km
    ]


def label_points(
    points: Sequence[GeoPoint],
    epsilon_km: float = DEFAULT_EPSILON_KM,
    min_points: int = DEFAULT_MIN_POINTS,
) -> List[int]:
    """Return one label per point: cluster number (0, 1, ...) or NOISE."""
    if epsilon_km < 0:
        raise ValueError(f"epsilon_km must be non-negative, got {epsilon_km}")
    if min_points < 1:
        raise ValueError(f"min_points must be at least 1, got {min_points}")

    labels = [UNVISITED] * len(points)
    cluster_id = 0

    for i in range(len(points)):
        if labels[i] != UNVISITED:
            continue

        neighbors = _region_query(points, i, epsilon_km)
        if len(neighbors) < min_points:
            labels[i] = NOISE
            continue

        labels[i] = cluster_id
        seeds = set(neighbors)
        seeds.discard(i)
        queue = deque(n for n in neighbors if n != i)

        while queue:
            j = queue.popleft()

            # Noise reached from a core point becomes a border point
            if labels[j] == NOISE:
                labels[j] = cluster_id
            if labels[j] != UNVISITED:
                continue

            labels[j] = cluster_id
            j_neighbors = _region_query(points, j, epsilon_km)
            if len(j_neighbors) >= min_points:
                for n in j_neighbors:
                    if n not in seeds:
                        seeds.add(n)
                        queue.append(n)

        cluster_id += 1

    return labels


def most_frequent_city(points: Sequence[GeoPoint]) -> str:
    """Most common city among points; ties go to the city seen first."""
    counts = Counter(p.city or "Unknown" for p in points)
    if not counts:
        return "Unknown"
    # Counter preserves insertion order, max() keeps the first maximum
    return max(counts, key=lambda city: counts[city])


def dbscan(
    points: Sequence[GeoPoint],
    epsilon_km: float = DEFAULT_EPSILON_KM,
    min_points: int = DEFAULT_MIN_POINTS,
) -> List[Cluster]:
    """Group points by spatial density. Noise points are in no cluster."""
    labels = label_points(points, epsilon_km, min_points)

    members: Dict[int, List[GeoPoint]] = {}
    for point, label in zip(points, labels):
        if label < 0:
            continue
        members.setdefault(label, []).append(point)

    return [
        Cluster(name=most_frequent_city(group), point_ids=[p.id for p in group])
        for _, group in sorted(members.items())
    ]
