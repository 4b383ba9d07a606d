"""Custom exceptions for the discovery service.

A claim that does not acquire a cell is NOT an error - it comes back as
ClaimResult(claimed=False) and callers treat it as a no-op.
"""


class DiscoveryError(Exception):
    """Base exception for all discovery-related errors."""

    pass


class ConfigurationError(DiscoveryError):
    """Raised when required configuration (e.g. the Places API key) is missing."""

    pass


class GeometryError(DiscoveryError):
    """Raised for malformed bounds, cell sizes or polygons."""

    pass


class ProviderError(DiscoveryError):
    """Raised when the place search provider returns a non-success response."""

    def __init__(self, message: str, status: str = "", status_code: int = 0):
        super().__init__(message)
        self.status = status
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Raised when the place search provider rate-limits us."""

    pass


class IngestionError(DiscoveryError):
    """Raised when a single candidate cannot be stored. Caught per record."""

    def __init__(self, message: str, external_id: str = ""):
        super().__init__(message)
        self.external_id = external_id


class CellNotFoundError(DiscoveryError):
    """Raised when a cell id does not exist."""

    pass


class GridNotFoundError(DiscoveryError):
    """Raised when a grid id does not exist."""

    pass


class CellStateError(DiscoveryError):
    """Raised when a structural operation is not allowed in the cell's current state."""

    pass
