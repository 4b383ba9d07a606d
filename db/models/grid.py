from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class DiscoveryGrid(BaseModel):
    """Discovery grid model matching the database schema."""

    id: int
    name: str
    region: str
    province: str
    queries: List[str] = []
    cell_size_km: float
    total_leads_found: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GridStats(BaseModel):
    """A grid plus counts over its leaf cells."""

    grid: DiscoveryGrid
    total_leaf_cells: int = 0
    searched_count: int = 0
    saturated_count: int = 0
    searching_count: int = 0
