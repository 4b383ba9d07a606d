"""Discovery Service - Grid generation and claim-based cell search."""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from loguru import logger
from pydantic import BaseModel

from db.models.cell import DiscoveryCell, QuerySaturation
from db.models.grid import DiscoveryGrid, GridStats
from services.discovery import repo
from services.discovery.candidates import to_candidate
from services.discovery.config import DiscoveryConfig
from services.discovery.constants import (
    CellStatus,
    DEFAULT_CELL_SIZE_KM,
    DEFAULT_GRID_NAME,
    DEFAULT_PROVINCE,
    DEFAULT_QUERIES,
    DEFAULT_REGION,
)
from services.discovery.errors import (
    CellNotFoundError,
    CellStateError,
    GeometryError,
    GridNotFoundError,
)
from services.discovery.grid_tiler import Bounds, cell_key, count_cells, subdivide, tile
from services.discovery.places import (
    LocationBias,
    PlaceResult,
    PlacesClient,
    PlaceSearchProvider,
    SearchResponse,
)
from services.discovery.saturation import in_bounds, is_saturated, query_saturation
from services.ingestor.service import IService as IIngestorService
from services.ingestor.service import Service as IngestorService

__all__ = ["IService", "Service", "DiscoverCellResult", "GridBatchResult", "CellListing"]


class DiscoverCellResult(BaseModel):
    """Summary of one discover_cell call. claimed=False means nothing was done."""
    cell_id: int
    claimed: bool = True
    total_api_results: int = 0
    in_bounds_results: int = 0
    new_leads: int = 0
    duplicates_skipped: int = 0
    saturated: bool = False
    query_saturation: List[QuerySaturation] = []


class GridBatchResult(BaseModel):
    """Summary of a discover_grid batch."""
    grid_id: int
    cells_attempted: int = 0
    cells_searched: int = 0
    cells_saturated: int = 0
    cells_skipped: int = 0
    cells_failed: int = 0
    new_leads: int = 0


class CellListing(BaseModel):
    """Leaf cells of a grid plus the depth-0 keys already activated."""
    grid_id: int
    cells: List[DiscoveryCell] = []
    activated_keys: List[str] = []


def merge_results(bounds: Bounds, responses: Sequence[SearchResponse]) -> List[PlaceResult]:
    """In-bounds places across all queries, deduped by external id.

    Responses are walked in query order and the first occurrence of an id
    wins, so the merge is deterministic no matter which search finished first.
    """
    seen = set()
    merged = []
    for resp in responses:
        for place in resp.results:
            if place.external_id in seen:
                continue
            seen.add(place.external_id)
            if in_bounds(bounds, place):
                merged.append(place)
    return merged


def cell_bounds(cell: DiscoveryCell) -> Bounds:
    return Bounds(sw_lat=cell.sw_lat, sw_lng=cell.sw_lng, ne_lat=cell.ne_lat, ne_lng=cell.ne_lng)


def clean_queries(queries: Sequence[str]) -> List[str]:
    """Strip, drop blanks and duplicates, keep order."""
    cleaned = []
    for q in queries:
        q = q.strip()
        if q and q not in cleaned:
            cleaned.append(q)
    return cleaned


class IService(ABC):
    """Discovery Service Interface - Grids, cells and cell search."""

    @abstractmethod
    async def discover_cell(
        self,
        cell_id: int,
        expected_statuses: Sequence[str] = CellStatus.CLAIMABLE,
    ) -> DiscoverCellResult:
        """
        Claim a cell, search it with every grid query, ingest new leads and
        record whether the cell is saturated.

        Args:
            cell_id: Cell to search
            expected_statuses: Statuses the claim may start from (pass
                SATURATED too to force a re-search)

        Returns:
            DiscoverCellResult (claimed=False and zero counts if the cell was not claimable)
        """
        pass

    @abstractmethod
    async def discover_grid(
        self,
        grid_id: int,
        statuses: Sequence[str] = (CellStatus.UNSEARCHED,),
        limit: int = 100,
        concurrency: Optional[int] = None,
    ) -> GridBatchResult:
        """Discover up to `limit` leaf cells in the given statuses with bounded concurrency."""
        pass

    @abstractmethod
    async def generate_grid(
        self,
        name: str,
        region: str,
        province: str,
        bounds: Bounds,
        queries: Optional[List[str]] = None,
        cell_size_km: Optional[float] = None,
        max_cells: Optional[int] = None,
    ) -> Tuple[int, int]:
        """
        Tile bounds, create a grid and its depth-0 cells.

        Returns:
            Tuple of (grid_id, cells_created)
        """
        pass

    @abstractmethod
    def estimate_grid(self, bounds: Bounds, cell_size_km: Optional[float] = None) -> int:
        """Number of cells generate_grid would create (no DB)."""
        pass

    @abstractmethod
    async def activate_cell(self, grid_id: int, bounds: Bounds, bounds_key: Optional[str] = None) -> Tuple[int, bool]:
        """Materialise a virtual cell. Returns (cell_id, already_existed)."""
        pass

    @abstractmethod
    async def subdivide_cell(self, cell_id: int) -> List[int]:
        """Split a leaf cell into 4 quadrant children. Returns child ids (SW, SE, NW, NE)."""
        pass

    @abstractmethod
    async def get_or_create_global_grid(self) -> Tuple[DiscoveryGrid, bool]:
        """Return the first grid, creating the default one if none exists. Returns (grid, created)."""
        pass

    @abstractmethod
    async def get_grid(self, grid_id: int) -> DiscoveryGrid:
        """Load a grid or raise GridNotFoundError."""
        pass

    @abstractmethod
    async def update_grid_queries(self, grid_id: int, queries: List[str]) -> List[str]:
        """Replace a grid's search queries. Returns the stored list."""
        pass

    @abstractmethod
    async def add_grid_query(self, grid_id: int, query: str) -> List[str]:
        """Append a query if not already present."""
        pass

    @abstractmethod
    async def remove_grid_query(self, grid_id: int, query: str) -> List[str]:
        """Remove a query if present."""
        pass

    @abstractmethod
    async def update_grid_metadata(
        self, grid_id: int, region: Optional[str] = None, province: Optional[str] = None
    ) -> None:
        """Change region/province labels. None leaves a field unchanged."""
        pass

    @abstractmethod
    async def list_grids(self) -> List[GridStats]:
        """All grids with leaf-cell stats."""
        pass

    @abstractmethod
    async def list_cells(self, grid_id: int) -> CellListing:
        """Leaf cells of a grid and its activated depth-0 keys."""
        pass


class Service(IService):
    def __init__(
        self,
        config: Optional[DiscoveryConfig] = None,
        provider: Optional[PlaceSearchProvider] = None,
        ingestor: Optional[IIngestorService] = None,
    ) -> None:
        self.config = config or DiscoveryConfig.from_env()
        self._provider = provider
        self.ingestor = ingestor or IngestorService()

    def _get_provider(self) -> PlaceSearchProvider:
        """Provider to search with. Raises ConfigurationError if there is no API key."""
        if self._provider is None:
            self._provider = PlacesClient(self.config.require_api_key(), config=self.config)
        return self._provider

    # =========================================================================
    # Cell search
    # =========================================================================

    async def discover_cell(
        self,
        cell_id: int,
        expected_statuses: Sequence[str] = CellStatus.CLAIMABLE,
    ) -> DiscoverCellResult:
        provider = self._get_provider()

        claim = await repo.claim_cell(cell_id, expected_statuses)
        if not claim.claimed:
            logger.warning(f"Cell {cell_id} not claimed (status={claim.previous_status}), skipping")
            return DiscoverCellResult(cell_id=cell_id, claimed=False)

        try:
            cell = await repo.get_cell_by_id(cell_id)
            if cell is None:
                raise CellNotFoundError(f"Cell {cell_id} not found")
            grid = await repo.get_grid_by_id(cell.grid_id)
            if grid is None:
                raise GridNotFoundError(f"Grid {cell.grid_id} not found")

            return await self._search_cell(provider, cell, grid)
        except (Exception, asyncio.CancelledError) as e:
            logger.error(f"Cell {cell_id} search failed, restoring status {claim.previous_status}: {e!r}")
            await repo.update_cell_status(cell_id, claim.previous_status)
            raise

    async def _search_cell(
        self, provider: PlaceSearchProvider, cell: DiscoveryCell, grid: DiscoveryGrid
    ) -> DiscoverCellResult:
        bounds = cell_bounds(cell)
        bias = LocationBias(
            lat=bounds.center_lat,
            lng=bounds.center_lng,
            radius_km=bounds.circumscribed_radius_km,
        )
        queries = list(grid.queries)

        logger.info(
            f"Searching cell {cell.id} (depth={cell.depth}) with {len(queries)} queries, "
            f"radius {bias.radius_km:.1f}km"
        )
        # gather keeps responses in query order regardless of completion order
        responses = await asyncio.gather(*(provider.search(q, bias) for q in queries))

        entries = query_saturation(bounds, queries, responses)
        merged = merge_results(bounds, responses)
        total_api_results = sum(len(r.results) for r in responses)

        candidates = [
            to_candidate(place, cell.id, cell.depth, grid.region, grid.province)
            for place in merged
        ]
        ingest = await self.ingestor.ingest_candidates(candidates)

        saturated = is_saturated(entries, self.config.density_threshold)
        status = CellStatus.SATURATED if saturated else CellStatus.SEARCHED

        await repo.update_cell_search_result(
            cell_id=cell.id,
            grid_id=grid.id,
            status=status,
            result_count=len(merged),
            query_saturation=entries,
            leads_found=ingest.inserted,
        )

        logger.info(
            f"Cell {cell.id}: {total_api_results} results, {len(merged)} in bounds, "
            f"{ingest.inserted} new, {ingest.skipped} skipped -> {status}"
        )
        return DiscoverCellResult(
            cell_id=cell.id,
            total_api_results=total_api_results,
            in_bounds_results=len(merged),
            new_leads=ingest.inserted,
            duplicates_skipped=ingest.skipped,
            saturated=saturated,
            query_saturation=entries,
        )

    async def discover_grid(
        self,
        grid_id: int,
        statuses: Sequence[str] = (CellStatus.UNSEARCHED,),
        limit: int = 100,
        concurrency: Optional[int] = None,
    ) -> GridBatchResult:
        # Fail fast on a missing key instead of once per cell
        self._get_provider()

        grid = await repo.get_grid_by_id(grid_id)
        if grid is None:
            raise GridNotFoundError(f"Grid {grid_id} not found")

        cells = await repo.get_leaf_cells_by_status(grid_id, statuses, limit=limit)
        batch = GridBatchResult(grid_id=grid_id, cells_attempted=len(cells))
        if not cells:
            logger.info(f"Grid {grid_id}: no leaf cells in {list(statuses)}")
            return batch

        logger.info(f"Grid {grid_id}: discovering {len(cells)} cells")
        semaphore = asyncio.Semaphore(concurrency or self.config.batch_concurrency)

        async def process(cell: DiscoveryCell) -> Optional[DiscoverCellResult]:
            async with semaphore:
                try:
                    return await self.discover_cell(cell.id, expected_statuses=statuses)
                except Exception as e:
                    logger.error(f"Cell {cell.id} failed: {e}")
                    return None

        results = await asyncio.gather(*(process(c) for c in cells))

        for r in results:
            if r is None:
                batch.cells_failed += 1
            elif not r.claimed:
                batch.cells_skipped += 1
            else:
                batch.cells_searched += 1
                batch.new_leads += r.new_leads
                if r.saturated:
                    batch.cells_saturated += 1

        logger.info(
            f"Grid {grid_id}: {batch.cells_searched} searched ({batch.cells_saturated} saturated), "
            f"{batch.cells_skipped} skipped, {batch.cells_failed} failed, {batch.new_leads} new leads"
        )
        return batch

    # =========================================================================
    # Grid / cell structure
    # =========================================================================

    async def generate_grid(
        self,
        name: str,
        region: str,
        province: str,
        bounds: Bounds,
        queries: Optional[List[str]] = None,
        cell_size_km: Optional[float] = None,
        max_cells: Optional[int] = None,
    ) -> Tuple[int, int]:
        size = cell_size_km or self.config.default_cell_size_km
        limit = max_cells or self.config.max_cells

        cells = tile(bounds, size, max_cells=limit)
        if not cells:
            needed = count_cells(bounds, size)
            raise GeometryError(
                f"Bounds need {needed} cells at {size}km, max is {limit}. Use a larger cell size."
            )

        query_list = clean_queries(queries if queries is not None else DEFAULT_QUERIES)
        grid_id, created = await repo.create_grid_with_cells(
            name=name,
            region=region,
            province=province,
            queries_list=query_list,
            cell_size_km=size,
            cells=cells,
        )
        logger.info(f"Created grid {grid_id} '{name}' with {created} cells ({size}km)")
        return grid_id, created

    def estimate_grid(self, bounds: Bounds, cell_size_km: Optional[float] = None) -> int:
        return count_cells(bounds, cell_size_km or self.config.default_cell_size_km)

    async def activate_cell(self, grid_id: int, bounds: Bounds, bounds_key: Optional[str] = None) -> Tuple[int, bool]:
        bounds.validate_shape()
        grid = await repo.get_grid_by_id(grid_id)
        if grid is None:
            raise GridNotFoundError(f"Grid {grid_id} not found")

        key = bounds_key or cell_key(bounds.sw_lat, bounds.sw_lng)
        cell_id, existed = await repo.activate_root_cell(grid_id, bounds, key)
        if not existed:
            logger.info(f"Activated cell {cell_id} ({key}) in grid {grid_id}")
        return cell_id, existed

    async def subdivide_cell(self, cell_id: int) -> List[int]:
        cell = await repo.get_cell_by_id(cell_id)
        if cell is None:
            raise CellNotFoundError(f"Cell {cell_id} not found")

        if not cell.is_leaf:
            children = await repo.get_child_cells(cell_id)
            return [c.id for c in children]

        if cell.status == CellStatus.SEARCHING:
            raise CellStateError(f"Cell {cell_id} is being searched, cannot subdivide")
        if cell.depth >= self.config.max_depth:
            raise CellStateError(f"Cell {cell_id} is at max depth {self.config.max_depth}")

        child_ids = await repo.insert_child_cells(cell, subdivide(cell_bounds(cell)))
        logger.info(f"Subdivided cell {cell_id} (depth={cell.depth}) into {child_ids}")
        return child_ids

    async def get_or_create_global_grid(self) -> Tuple[DiscoveryGrid, bool]:
        grid = await repo.get_first_grid()
        if grid:
            return grid, False

        grid_id = await repo.insert_grid(
            name=DEFAULT_GRID_NAME,
            region=DEFAULT_REGION,
            province=DEFAULT_PROVINCE,
            queries_list=list(DEFAULT_QUERIES),
            cell_size_km=DEFAULT_CELL_SIZE_KM,
        )
        logger.info(f"Created global grid {grid_id}")
        return await self.get_grid(grid_id), True

    async def get_grid(self, grid_id: int) -> DiscoveryGrid:
        grid = await repo.get_grid_by_id(grid_id)
        if grid is None:
            raise GridNotFoundError(f"Grid {grid_id} not found")
        return grid

    async def update_grid_queries(self, grid_id: int, queries: List[str]) -> List[str]:
        await self.get_grid(grid_id)
        cleaned = clean_queries(queries)
        await repo.update_grid_queries(grid_id, cleaned)
        return cleaned

    async def add_grid_query(self, grid_id: int, query: str) -> List[str]:
        grid = await self.get_grid(grid_id)
        updated = clean_queries(list(grid.queries) + [query])
        if updated != list(grid.queries):
            await repo.update_grid_queries(grid_id, updated)
        return updated

    async def remove_grid_query(self, grid_id: int, query: str) -> List[str]:
        grid = await self.get_grid(grid_id)
        target = query.strip()
        updated = [q for q in grid.queries if q != target]
        if updated != list(grid.queries):
            await repo.update_grid_queries(grid_id, updated)
        return updated

    async def update_grid_metadata(
        self, grid_id: int, region: Optional[str] = None, province: Optional[str] = None
    ) -> None:
        await self.get_grid(grid_id)
        await repo.update_grid_metadata(grid_id, region=region, province=province)

    async def list_grids(self) -> List[GridStats]:
        return await repo.get_grids_with_stats()

    async def list_cells(self, grid_id: int) -> CellListing:
        await self.get_grid(grid_id)
        cells = await repo.get_leaf_cells(grid_id)
        keys = await repo.get_root_bounds_keys(grid_id)
        return CellListing(grid_id=grid_id, cells=cells, activated_keys=keys)
