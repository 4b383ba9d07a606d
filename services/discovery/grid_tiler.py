"""
Grid Tiler - Virtual grid of search cells over a map region.

Cells are snapped to a global step grid so that two calls with overlapping
bounds produce identical edges (and identical keys) in the overlap. Nothing
here touches the database; persisted cells are created from this output.
"""

import math
from typing import List

from pydantic import BaseModel, ConfigDict

from lib.geo.geometry import haversine_km
from services.discovery.constants import KM_PER_DEGREE_LAT, LAT_BAND_DEGREES, MAX_CELLS
from services.discovery.errors import GeometryError


class Bounds(BaseModel):
    """A lat/lng rectangle (south-west and north-east corners)."""
    model_config = ConfigDict(frozen=True)

    sw_lat: float
    sw_lng: float
    ne_lat: float
    ne_lng: float

    @property
    def center_lat(self) -> float:
        return (self.sw_lat + self.ne_lat) / 2

    @property
    def center_lng(self) -> float:
        return (self.sw_lng + self.ne_lng) / 2

    @property
    def circumscribed_radius_km(self) -> float:
        """Distance from center to the NE corner - a circle covering the whole cell."""
        return haversine_km(self.center_lat, self.center_lng, self.ne_lat, self.ne_lng)

    def contains(self, lat: float, lng: float) -> bool:
        """Is the point inside the rectangle (edges included)?"""
        return self.sw_lat <= lat <= self.ne_lat and self.sw_lng <= lng <= self.ne_lng

    def validate_shape(self) -> "Bounds":
        """Raise GeometryError unless this is a well-formed rectangle."""
        if not (-90 <= self.sw_lat <= 90 and -90 <= self.ne_lat <= 90):
            raise GeometryError(f"Latitude out of range: {self.sw_lat}, {self.ne_lat}")
        if not (-180 <= self.sw_lng <= 180 and -180 <= self.ne_lng <= 180):
            raise GeometryError(f"Longitude out of range: {self.sw_lng}, {self.ne_lng}")
        if self.sw_lat >= self.ne_lat:
            raise GeometryError(f"sw_lat ({self.sw_lat}) must be less than ne_lat ({self.ne_lat})")
        if self.sw_lng >= self.ne_lng:
            raise GeometryError(f"sw_lng ({self.sw_lng}) must be less than ne_lng ({self.ne_lng})")
        return self


class VirtualCell(Bounds):
    """A tiler cell, identified by the key of its south-west corner."""
    key: str


def cell_key(lat: float, lng: float) -> str:
    """Stable key for a south-west corner: both coordinates to 6 decimals."""
    # + 0.0 turns -0.0 into 0.0 so keys don't differ by sign of zero
    return f"{round(lat, 6) + 0.0:.6f}_{round(lng, 6) + 0.0:.6f}"


def snapped_mid_lat(sw_lat: float, ne_lat: float) -> float:
    """Midpoint latitude snapped to the nearest 5-degree band (halves round up)."""
    mid = (sw_lat + ne_lat) / 2
    return math.floor(mid / LAT_BAND_DEGREES + 0.5) * LAT_BAND_DEGREES


def grid_steps(bounds: Bounds, cell_size_km: float) -> tuple:
    """(lat_step, lng_step) in degrees for a target edge length."""
    if cell_size_km <= 0:
        raise GeometryError(f"cell_size_km must be positive, got {cell_size_km}")

    lat_step = cell_size_km / KM_PER_DEGREE_LAT
    mid_lat = snapped_mid_lat(bounds.sw_lat, bounds.ne_lat)
    lng_step = cell_size_km / (KM_PER_DEGREE_LAT * math.cos(math.radians(mid_lat)))
    return lat_step, lng_step


def _index_range(low: float, high: float, step: float) -> range:
    """Global step indexes whose cells cover [low, high].

    Starts at floor(low / step); the last index is the first one whose cell
    reaches or passes high (every included cell has its low edge below high).
    """
    first = math.floor(low / step)
    last = max(first, math.ceil(high / step) - 1)
    # Float division can land one index off either way
    while (last + 1) * step < high:
        last += 1
    while last > first and last * step >= high:
        last -= 1
    return range(first, last + 1)


def count_cells(bounds: Bounds, cell_size_km: float) -> int:
    """How many cells tile() would emit, ignoring max_cells."""
    bounds.validate_shape()
    lat_step, lng_step = grid_steps(bounds, cell_size_km)
    rows = _index_range(bounds.sw_lat, bounds.ne_lat, lat_step)
    cols = _index_range(bounds.sw_lng, bounds.ne_lng, lng_step)
    return len(rows) * len(cols)


def tile(bounds: Bounds, cell_size_km: float, max_cells: int = MAX_CELLS) -> List[VirtualCell]:
    """Cover bounds with snapped cells of roughly cell_size_km per edge.

    Returns cells row-major (south to north, west to east). Returns an empty
    list when more than max_cells would be needed - ask for bigger cells.
    """
    bounds.validate_shape()
    lat_step, lng_step = grid_steps(bounds, cell_size_km)

    rows = _index_range(bounds.sw_lat, bounds.ne_lat, lat_step)
    cols = _index_range(bounds.sw_lng, bounds.ne_lng, lng_step)
    if len(rows) * len(cols) > max_cells:
        return []

    cells = []
    for i in rows:
        # Edges come from the global integer index so any two tilings agree bit for bit
        sw_lat = i * lat_step
        ne_lat = (i + 1) * lat_step
        for j in cols:
            sw_lng = j * lng_step
            ne_lng = (j + 1) * lng_step
            cells.append(VirtualCell(
                sw_lat=sw_lat,
                sw_lng=sw_lng,
                ne_lat=ne_lat,
                ne_lng=ne_lng,
                key=cell_key(sw_lat, sw_lng),
            ))
    return cells


def subdivide(bounds: Bounds) -> List[Bounds]:
    """Split into 4 quadrants: SW, SE, NW, NE."""
    mid_lat = bounds.center_lat
    mid_lng = bounds.center_lng
    return [
        Bounds(sw_lat=bounds.sw_lat, sw_lng=bounds.sw_lng, ne_lat=mid_lat, ne_lng=mid_lng),
        Bounds(sw_lat=bounds.sw_lat, sw_lng=mid_lng, ne_lat=mid_lat, ne_lng=bounds.ne_lng),
        Bounds(sw_lat=mid_lat, sw_lng=bounds.sw_lng, ne_lat=bounds.ne_lat, ne_lng=mid_lng),
        Bounds(sw_lat=mid_lat, sw_lng=mid_lng, ne_lat=bounds.ne_lat, ne_lng=bounds.ne_lng),
    ]
