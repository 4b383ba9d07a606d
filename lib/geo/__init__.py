"""Geo shared library.

Pure geometry and clustering used by discovery and clustering services.
Distance, polygons, hulls, DBSCAN only - NO repo/network (those are service-specific).
"""

from lib.geo.geometry import (
    EARTH_RADIUS_KM,
    LatLng,
    haversine_km,
    validate_coordinates,
    point_in_polygon,
    polygon_centroid,
    mean_centroid,
    bounding_radius,
    convex_hull,
)
from lib.geo.dbscan import GeoPoint, Cluster, dbscan, label_points, NOISE

__all__ = [
    # Geometry
    "EARTH_RADIUS_KM",
    "LatLng",
    "haversine_km",
    "validate_coordinates",
    "point_in_polygon",
    "polygon_centroid",
    "mean_centroid",
    "bounding_radius",
    "convex_hull",
    # Clustering
    "GeoPoint",
    "Cluster",
    "dbscan",
    "label_points",
    "NOISE",
]
