"""
Saturation detection for a searched cell.

A cell is saturated when the provider capped every query AND each query
still found enough results inside the cell rectangle. A capped query whose
results are mostly outside the cell only means the location bias pulled in
neighbours; subdividing would not help, so it does not count.
"""

from typing import Iterable, List, Sequence

from db.models.cell import QuerySaturation
from services.discovery.grid_tiler import Bounds
from services.discovery.places import PlaceResult, SearchResponse


def in_bounds(bounds: Bounds, place: PlaceResult) -> bool:
    """Does the place have coordinates inside the cell (edges included)?"""
    if place.lat is None or place.lng is None:
        return False
    return bounds.contains(place.lat, place.lng)


def count_in_bounds(bounds: Bounds, places: Iterable[PlaceResult]) -> int:
    return sum(1 for p in places if in_bounds(bounds, p))


def query_saturation(bounds: Bounds, queries: Sequence[str], responses: Sequence[SearchResponse]) -> List[QuerySaturation]:
    """One entry per query, in query order."""
    return [
        QuerySaturation(
            query=query,
            count=len(resp.results),
            in_bounds=count_in_bounds(bounds, resp.results),
            hit_cap=resp.hit_result_cap,
        )
        for query, resp in zip(queries, responses)
    ]


def is_saturated(entries: Sequence[QuerySaturation], density_threshold: int) -> bool:
    """Two-part test: every query hit the cap and every query is dense in-bounds."""
    if not entries:
        return False
    all_capped = all(e.hit_cap for e in entries)
    all_dense = all(e.in_bounds >= density_threshold for e in entries)
    return all_capped and all_dense
