"""
Geometry helpers for discovery cells and lead clusters.

Pure functions only - no database, no network. Coordinates are plain
decimal degrees; polygons are ordered lists of (lat, lng) vertices without
the first vertex repeated.
"""

import math
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

EARTH_RADIUS_KM = 6371.0


class LatLng(BaseModel):
    """A single coordinate pair."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def validate_coordinates(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """Check that coordinates are present and within valid ranges."""
    if latitude is None or longitude is None:
        return False
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    if not (-90 <= latitude <= 90):
        return False
    if not (-180 <= longitude <= 180):
        return False
    return True


def point_in_polygon(point: LatLng, polygon: Sequence[LatLng]) -> bool:
    """Ray-casting test: is the point inside the polygon?"""
    inside = False
    n = len(polygon)
    j = n - 1
    for i in range(n):
        yi, xi = polygon[i].lat, polygon[i].lng
        yj, xj = polygon[j].lat, polygon[j].lng

        crosses = (yi > point.lat) != (yj > point.lat)
        if crosses and point.lng < (xj - xi) * (point.lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def polygon_centroid(polygon: Sequence[LatLng]) -> LatLng:
    """Area-weighted centroid of a simple polygon.

    Degenerate inputs fall back to something sensible: empty -> (0, 0),
    one vertex -> that vertex, two vertices -> their midpoint, zero area ->
    mean of the vertices.
    """
    if not polygon:
        return LatLng(lat=0.0, lng=0.0)
    if len(polygon) == 1:
        return LatLng(lat=polygon[0].lat, lng=polygon[0].lng)
    if len(polygon) == 2:
        return LatLng(
            lat=(polygon[0].lat + polygon[1].lat) / 2,
            lng=(polygon[0].lng + polygon[1].lng) / 2,
        )

    area = 0.0
    c_lat = 0.0
    c_lng = 0.0
    j = len(polygon) - 1
    for i in range(len(polygon)):
        cross = polygon[j].lng * polygon[i].lat - polygon[i].lng * polygon[j].lat
        area += cross
        c_lat += (polygon[j].lat + polygon[i].lat) * cross
        c_lng += (polygon[j].lng + polygon[i].lng) * cross
        j = i

    area /= 2
    if area == 0:
        return mean_centroid(polygon)

    factor = 1 / (6 * area)
    return LatLng(lat=c_lat * factor, lng=c_lng * factor)


def mean_centroid(points: Sequence[LatLng]) -> LatLng:
    """Arithmetic mean of latitudes and longitudes."""
    if not points:
        raise ValueError("mean_centroid requires at least one point")
    lat = sum(p.lat for p in points) / len(points)
    lng = sum(p.lng for p in points) / len(points)
    return LatLng(lat=lat, lng=lng)


def bounding_radius(center: LatLng, points: Sequence[LatLng], floor_km: float = 0.0) -> float:
    """Max haversine distance (km) from center to any point, never below floor_km."""
    max_dist = 0.0
    for p in points:
        dist = haversine_km(center.lat, center.lng, p.lat, p.lng)
        if dist > max_dist:
            max_dist = dist
    return max(max_dist, floor_km)


def _cross(o: Tuple[float, float], a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: Sequence[LatLng]) -> List[LatLng]:
    """Convex hull via Andrew's monotone chain, counter-clockwise.

    Uses lng as x and lat as y. Interior and collinear boundary points are
    dropped. Fewer than 3 points are returned unchanged.
    """
    if len(points) < 3:
        return list(points)

    coords = sorted({(p.lng, p.lat) for p in points})
    if len(coords) < 3:
        return [LatLng(lat=y, lng=x) for x, y in coords]

    lower: List[Tuple[float, float]] = []
    for c in coords:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], c) <= 0:
            lower.pop()
        lower.append(c)

    upper: List[Tuple[float, float]] = []
    for c in reversed(coords):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], c) <= 0:
            upper.pop()
        upper.append(c)

    hull = lower[:-1] + upper[:-1]
    return [LatLng(lat=y, lng=x) for x, y in hull]
