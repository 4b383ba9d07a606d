import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from lib.geo.geometry import LatLng


class Cluster(BaseModel):
    """Cluster model matching the database schema."""

    id: int
    name: str
    boundary: List[LatLng] = []    # hull vertices, CCW
    center_lat: float
    center_lng: float
    radius_km: float
    lead_count: int = 0
    is_auto_generated: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("boundary", mode="before")
    @classmethod
    def _parse_jsonb(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v or []
