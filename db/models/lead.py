from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Lead(BaseModel):
    """Lead model matching the database schema."""

    id: int
    external_id: str
    name: str
    type: str

    # Location
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country_code: str = ""
    region: str = ""
    province: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Provenance
    source: str
    source_detail: str = ""
    discovery_cell_id: Optional[int] = None

    # Pipeline
    status: str = "new_lead"
    cluster_id: Optional[int] = None
    follow_up_count: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
