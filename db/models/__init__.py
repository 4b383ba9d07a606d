from db.models.grid import DiscoveryGrid, GridStats
from db.models.cell import DiscoveryCell, QuerySaturation, ClaimResult
from db.models.lead import Lead
from db.models.cluster import Cluster

__all__ = [
    "DiscoveryGrid",
    "GridStats",
    "DiscoveryCell",
    "QuerySaturation",
    "ClaimResult",
    "Lead",
    "Cluster",
]
