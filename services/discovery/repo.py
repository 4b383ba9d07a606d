"""Repository for discovery grids and cells."""

import json
from typing import List, Optional, Sequence, Tuple

from db.client import queries, get_conn, get_transaction
from db.models.cell import ClaimResult, DiscoveryCell, QuerySaturation
from db.models.grid import DiscoveryGrid, GridStats
from services.discovery.constants import CellStatus
from services.discovery.errors import CellNotFoundError, CellStateError
from services.discovery.grid_tiler import Bounds, VirtualCell, cell_key


# ============================================================================
# Grids
# ============================================================================

async def insert_grid(
    name: str,
    region: str,
    province: str,
    queries_list: List[str],
    cell_size_km: float,
) -> int:
    """Insert a new grid and return its ID."""
    async with get_conn() as conn:
        return await queries.insert_grid(
            conn,
            name=name,
            region=region,
            province=province,
            queries=queries_list,
            cell_size_km=cell_size_km,
        )


async def create_grid_with_cells(
    name: str,
    region: str,
    province: str,
    queries_list: List[str],
    cell_size_km: float,
    cells: Sequence[VirtualCell],
) -> Tuple[int, int]:
    """Create a grid and its depth-0 cells in one transaction.

    Returns (grid_id, cells_inserted).
    """
    async with get_transaction() as conn:
        grid_id = await queries.insert_grid(
            conn,
            name=name,
            region=region,
            province=province,
            queries=queries_list,
            cell_size_km=cell_size_km,
        )
        inserted = await _insert_root_cells(conn, grid_id, cells)
        return grid_id, inserted


async def _insert_root_cells(conn, grid_id: int, cells: Sequence[VirtualCell]) -> int:
    inserted = 0
    for cell in cells:
        cell_id = await queries.insert_root_cell(
            conn,
            grid_id=grid_id,
            sw_lat=cell.sw_lat,
            sw_lng=cell.sw_lng,
            ne_lat=cell.ne_lat,
            ne_lng=cell.ne_lng,
            bounds_key=cell.key,
        )
        if cell_id is not None:
            inserted += 1
    return inserted


async def insert_root_cells(grid_id: int, cells: Sequence[VirtualCell]) -> int:
    """Bulk insert tiler cells; keys already present in the grid are skipped."""
    async with get_transaction() as conn:
        return await _insert_root_cells(conn, grid_id, cells)


async def get_grid_by_id(grid_id: int) -> Optional[DiscoveryGrid]:
    async with get_conn() as conn:
        result = await queries.get_grid_by_id(conn, grid_id=grid_id)
        if result:
            return DiscoveryGrid.model_validate(dict(result))
        return None


async def get_first_grid() -> Optional[DiscoveryGrid]:
    """Oldest grid, if any."""
    async with get_conn() as conn:
        result = await queries.get_first_grid(conn)
        if result:
            return DiscoveryGrid.model_validate(dict(result))
        return None


async def get_grids_with_stats() -> List[GridStats]:
    """All grids with leaf-cell counts."""
    async with get_conn() as conn:
        results = await queries.get_grids_with_stats(conn)
        stats = []
        for row in results:
            row = dict(row)
            stats.append(GridStats(
                grid=DiscoveryGrid.model_validate(row),
                total_leaf_cells=row["total_leaf_cells"],
                searched_count=row["searched_count"],
                saturated_count=row["saturated_count"],
                searching_count=row["searching_count"],
            ))
        return stats


async def update_grid_queries(grid_id: int, queries_list: List[str]) -> None:
    async with get_conn() as conn:
        await queries.update_grid_queries(conn, grid_id=grid_id, queries=queries_list)


async def update_grid_metadata(grid_id: int, region: Optional[str] = None, province: Optional[str] = None) -> None:
    async with get_conn() as conn:
        await queries.update_grid_metadata(conn, grid_id=grid_id, region=region, province=province)


# ============================================================================
# Cells
# ============================================================================

async def get_cell_by_id(cell_id: int) -> Optional[DiscoveryCell]:
    async with get_conn() as conn:
        result = await queries.get_cell_by_id(conn, cell_id=cell_id)
        if result:
            return DiscoveryCell.model_validate(dict(result))
        return None


async def get_root_cell_by_key(grid_id: int, bounds_key: str) -> Optional[DiscoveryCell]:
    async with get_conn() as conn:
        result = await queries.get_root_cell_by_key(conn, grid_id=grid_id, bounds_key=bounds_key)
        if result:
            return DiscoveryCell.model_validate(dict(result))
        return None


async def activate_root_cell(grid_id: int, bounds: Bounds, bounds_key: str) -> Tuple[int, bool]:
    """Materialise a tiler cell as a depth-0 row.

    Returns (cell_id, already_existed). Safe under concurrent activation of
    the same key: the unique index decides and the loser reads the winner.
    """
    async with get_conn() as conn:
        cell_id = await queries.insert_root_cell(
            conn,
            grid_id=grid_id,
            sw_lat=bounds.sw_lat,
            sw_lng=bounds.sw_lng,
            ne_lat=bounds.ne_lat,
            ne_lng=bounds.ne_lng,
            bounds_key=bounds_key,
        )
        if cell_id is not None:
            return cell_id, False

        existing = await queries.get_root_cell_by_key(conn, grid_id=grid_id, bounds_key=bounds_key)
        return existing["id"], True


async def get_child_cells(parent_cell_id: int) -> List[DiscoveryCell]:
    async with get_conn() as conn:
        results = await queries.get_child_cells(conn, parent_cell_id=parent_cell_id)
        return [DiscoveryCell.model_validate(dict(row)) for row in results]


async def insert_child_cells(parent: DiscoveryCell, quadrants: Sequence[Bounds]) -> List[int]:
    """Insert children for a parent and mark the parent as non-leaf (one transaction).

    The parent row is locked first; if another caller already split it, its
    existing children are returned instead. A parent claimed for search since
    it was read raises CellStateError.
    """
    child_ids = []
    async with get_transaction() as conn:
        locked = await queries.lock_cell(conn, cell_id=parent.id)
        if not locked:
            raise CellNotFoundError(f"Cell {parent.id} not found")
        if not locked["is_leaf"]:
            existing = await queries.get_child_cells(conn, parent_cell_id=parent.id)
            return [row["id"] for row in existing]
        if locked["status"] == CellStatus.SEARCHING:
            raise CellStateError(f"Cell {parent.id} is being searched, cannot subdivide")

        for q in quadrants:
            child_id = await queries.insert_child_cell(
                conn,
                grid_id=parent.grid_id,
                sw_lat=q.sw_lat,
                sw_lng=q.sw_lng,
                ne_lat=q.ne_lat,
                ne_lng=q.ne_lng,
                depth=parent.depth + 1,
                parent_cell_id=parent.id,
                bounds_key=cell_key(q.sw_lat, q.sw_lng),
            )
            child_ids.append(child_id)
        await queries.mark_cell_not_leaf(conn, cell_id=parent.id)
    return child_ids


async def get_leaf_cells(grid_id: int) -> List[DiscoveryCell]:
    async with get_conn() as conn:
        results = await queries.get_leaf_cells(conn, grid_id=grid_id)
        return [DiscoveryCell.model_validate(dict(row)) for row in results]


async def get_leaf_cells_by_status(grid_id: int, statuses: Sequence[str], limit: int = 100) -> List[DiscoveryCell]:
    async with get_conn() as conn:
        results = await queries.get_leaf_cells_by_status(
            conn, grid_id=grid_id, statuses=list(statuses), limit=limit
        )
        return [DiscoveryCell.model_validate(dict(row)) for row in results]


async def get_root_bounds_keys(grid_id: int) -> List[str]:
    """Keys of depth-0 cells already activated in a grid."""
    async with get_conn() as conn:
        results = await queries.get_root_bounds_keys(conn, grid_id=grid_id)
        return [row["bounds_key"] for row in results]


# ============================================================================
# Claim / status
# ============================================================================

async def claim_cell(cell_id: int, expected_statuses: Sequence[str]) -> ClaimResult:
    """Atomically move a cell to 'searching' if its status is one of expected_statuses.

    Multi-worker safe: the row is locked and the status checked and updated
    in one statement. Not claiming is a normal result (claimed=False) and
    leaves the cell untouched.
    """
    async with get_conn() as conn:
        result = await queries.claim_cell(
            conn, cell_id=cell_id, expected_statuses=list(expected_statuses)
        )
        if not result:
            raise CellNotFoundError(f"Cell {cell_id} not found")
        return ClaimResult(claimed=result["claimed"], previous_status=result["previous_status"])


async def update_cell_status(cell_id: int, status: str) -> None:
    """Set status directly (used to roll a failed search back)."""
    async with get_conn() as conn:
        await queries.update_cell_status(conn, cell_id=cell_id, status=status)


async def update_cell_search_result(
    cell_id: int,
    grid_id: int,
    status: str,
    result_count: int,
    query_saturation: List[QuerySaturation],
    leads_found: int,
) -> None:
    """Persist a completed search and bump the grid's lead total (one transaction)."""
    async with get_transaction() as conn:
        await queries.update_cell_search_result(
            conn,
            cell_id=cell_id,
            status=status,
            result_count=result_count,
            query_saturation=json.dumps([e.model_dump() for e in query_saturation]),
            leads_found=leads_found,
        )
        if leads_found:
            await queries.add_grid_leads_found(conn, grid_id=grid_id, new_leads=leads_found)
