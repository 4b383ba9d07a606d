import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class QuerySaturation(BaseModel):
    """Per-query result of one cell search."""

    query: str
    count: int          # raw results returned by the provider
    in_bounds: int      # how many of those fall inside the cell rectangle
    hit_cap: bool       # provider returned its maximum page count


class DiscoveryCell(BaseModel):
    """Discovery cell model matching the database schema."""

    id: int
    grid_id: int

    # Bounds
    sw_lat: float
    sw_lng: float
    ne_lat: float
    ne_lng: float

    # Tree structure (children reference parent_cell_id, depth = parent + 1)
    depth: int = 0
    parent_cell_id: Optional[int] = None
    is_leaf: bool = True
    bounds_key: Optional[str] = None

    # Search state
    status: str = "unsearched"
    result_count: Optional[int] = None
    query_saturation: List[QuerySaturation] = []
    last_searched_at: Optional[datetime] = None
    leads_found: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("query_saturation", mode="before")
    @classmethod
    def _parse_jsonb(cls, v):
        # asyncpg hands jsonb back as text
        if isinstance(v, str):
            return json.loads(v)
        return v or []


class ClaimResult(BaseModel):
    """Outcome of claim_cell. claimed=False is a normal no-op, not an error."""

    claimed: bool
    previous_status: str
