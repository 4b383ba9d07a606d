"""
Discovery configuration.

Values come from the environment (.env is loaded on import). The saturation
policy constants are tuned against Google Places paging, so they are
overridable rather than hard-coded.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from services.discovery.constants import (
    DEFAULT_CELL_SIZE_KM,
    DEFAULT_DENSITY_THRESHOLD,
    DEFAULT_RESULT_CAP,
    MAX_CELLS,
    MAX_DEPTH,
)
from services.discovery.errors import ConfigurationError

load_dotenv()


class DiscoveryConfig(BaseModel):
    """Configuration for cell discovery."""
    model_config = ConfigDict(frozen=True)

    places_api_key: Optional[str] = None
    result_cap: int = DEFAULT_RESULT_CAP             # provider's max results per query
    density_threshold: int = DEFAULT_DENSITY_THRESHOLD  # min in-bounds results per query to call it saturated
    request_timeout_s: float = 30.0
    max_pages: int = 3
    page_delay_s: float = 2.0   # Google needs a pause before a next_page_token is valid
    page_retries: int = 3
    max_cells: int = MAX_CELLS
    default_cell_size_km: float = DEFAULT_CELL_SIZE_KM
    max_depth: int = MAX_DEPTH
    batch_concurrency: int = 3

    @classmethod
    def from_env(cls) -> "DiscoveryConfig":
        """Build config from environment variables, falling back to defaults."""
        return cls(
            places_api_key=os.getenv("GOOGLE_PLACES_API_KEY") or None,
            result_cap=int(os.getenv("DISCOVERY_RESULT_CAP", str(DEFAULT_RESULT_CAP))),
            density_threshold=int(os.getenv("DISCOVERY_DENSITY_THRESHOLD", str(DEFAULT_DENSITY_THRESHOLD))),
            request_timeout_s=float(os.getenv("DISCOVERY_REQUEST_TIMEOUT", "30")),
            max_cells=int(os.getenv("DISCOVERY_MAX_CELLS", str(MAX_CELLS))),
            default_cell_size_km=float(os.getenv("DISCOVERY_CELL_SIZE_KM", str(DEFAULT_CELL_SIZE_KM))),
            batch_concurrency=int(os.getenv("DISCOVERY_CONCURRENCY", "3")),
        )

    def require_api_key(self) -> str:
        """Return the Places API key or fail fast."""
        if not self.places_api_key:
            raise ConfigurationError(
                "No Google Places API key. Set GOOGLE_PLACES_API_KEY env var or pass places_api_key."
            )
        return self.places_api_key
