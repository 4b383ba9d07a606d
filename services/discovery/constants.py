"""Constants for the discovery service."""


class CellStatus:
    """Search status of a discovery cell.

    UNSEARCHED
        ↓ claim
    SEARCHING
        ↓ search completes
    SEARCHED  or  SATURATED

    SEARCHED -> SEARCHING is a normal re-search. SATURATED is near-terminal:
    the cell should be subdivided, but an operator may force a re-search.
    """

    UNSEARCHED = "unsearched"
    SEARCHING = "searching"
    SEARCHED = "searched"
    SATURATED = "saturated"

    ALL = (UNSEARCHED, SEARCHING, SEARCHED, SATURATED)

    # Statuses a normal discovery trigger may claim from
    CLAIMABLE = (UNSEARCHED, SEARCHED)


class LeadType:
    """Lead categories inferred from place names and type tags."""

    FARM = "farm"
    FARMERS_MARKET = "farmers_market"
    RETAIL_STORE = "retail_store"
    ROADSIDE_STAND = "roadside_stand"
    OTHER = "other"


class LeadStatus:
    """Initial pipeline status for discovered leads (rest of the CRM flow lives elsewhere)."""

    NEW_LEAD = "new_lead"


# Provenance for leads found through place search
SOURCE_GOOGLE_PLACES = "google_places"

# Grid defaults
DEFAULT_CELL_SIZE_KM = 10.0
MAX_CELLS = 500
MAX_DEPTH = 4
KM_PER_DEGREE_LAT = 111.0
LAT_BAND_DEGREES = 5

# Saturation policy (see DiscoveryConfig for env overrides)
DEFAULT_RESULT_CAP = 60       # Places Text Search: 3 pages x 20
DEFAULT_DENSITY_THRESHOLD = 20

DEFAULT_GRID_NAME = "Discovery"
DEFAULT_REGION = "Ontario"
DEFAULT_PROVINCE = "Ontario"
DEFAULT_QUERIES = ["farm market", "fruit stand", "farmers market"]
