#!/usr/bin/env python3
"""
Cell discovery workflow.

Claim leaf cells of a grid, search them with the grid's queries, ingest new
leads and mark each cell searched or saturated. Cells another worker holds
are skipped.

Usage:
    # Search up to 100 unsearched cells of grid 1
    uv run python -m workflows.discover_cells --grid-id 1

    # Bigger batch, more parallel cells
    uv run python -m workflows.discover_cells --grid-id 1 --limit 500 --concurrency 5

    # Re-search cells that were already searched
    uv run python -m workflows.discover_cells --grid-id 1 --include-searched

    # Search a single cell
    uv run python -m workflows.discover_cells --cell-id 42

    # Force a re-search of a saturated cell
    uv run python -m workflows.discover_cells --cell-id 42 --force
"""

import argparse
import asyncio
import os
import sys
from typing import Optional

from loguru import logger

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.client import init_db, close_db
from infra import slack
from services.discovery.constants import CellStatus
from services.discovery.errors import DiscoveryError
from services.discovery.service import DiscoverCellResult, GridBatchResult, Service


async def discover_grid_workflow(
    grid_id: int,
    limit: int = 100,
    concurrency: Optional[int] = None,
    include_searched: bool = False,
    notify: bool = True,
    service: Optional[Service] = None,
) -> GridBatchResult:
    """Discover a batch of leaf cells in one grid."""
    service = service or Service()
    grid = await service.get_grid(grid_id)

    statuses = [CellStatus.UNSEARCHED]
    if include_searched:
        statuses.append(CellStatus.SEARCHED)

    logger.info("=" * 70)
    logger.info(f"Discovering grid {grid.id}: {grid.name}")
    logger.info("=" * 70)
    logger.info(f"Queries: {', '.join(grid.queries)}")
    logger.info(f"Statuses: {', '.join(statuses)} (limit {limit})")

    batch = await service.discover_grid(grid_id, statuses=statuses, limit=limit, concurrency=concurrency)

    logger.info("")
    logger.info("=" * 70)
    logger.info("Discovery Complete")
    logger.info("=" * 70)
    logger.info(f"Cells attempted: {batch.cells_attempted}")
    logger.info(f"Cells searched: {batch.cells_searched}")
    logger.info(f"Cells saturated: {batch.cells_saturated}")
    logger.info(f"Cells skipped (claimed elsewhere): {batch.cells_skipped}")
    logger.info(f"Cells failed: {batch.cells_failed}")
    logger.info(f"New leads: {batch.new_leads}")

    if notify and batch.cells_searched:
        slack.send_discovery_summary(
            grid_name=grid.name,
            cells_searched=batch.cells_searched,
            cells_saturated=batch.cells_saturated,
            cells_failed=batch.cells_failed,
            new_leads=batch.new_leads,
        )

    return batch


async def discover_single_cell_workflow(
    cell_id: int,
    force: bool = False,
    service: Optional[Service] = None,
) -> DiscoverCellResult:
    """Search one cell. force=True also re-searches a saturated cell."""
    service = service or Service()
    statuses = list(CellStatus.CLAIMABLE)
    if force:
        statuses.append(CellStatus.SATURATED)
    result = await service.discover_cell(cell_id, expected_statuses=statuses)

    if not result.claimed:
        logger.warning(f"Cell {cell_id} was not claimed, nothing to do")
        return result

    logger.success(
        f"Cell {cell_id}: {result.in_bounds_results} in bounds / {result.total_api_results} results, "
        f"{result.new_leads} new leads, {result.duplicates_skipped} duplicates"
        + (" (saturated)" if result.saturated else "")
    )
    for entry in result.query_saturation:
        logger.info(
            f"  {entry.query}: {entry.count} results, {entry.in_bounds} in bounds"
            + (" [cap]" if entry.hit_cap else "")
        )
    return result


async def main():
    parser = argparse.ArgumentParser(
        description="Search discovery cells for new leads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--grid-id", type=int, help="Grid to discover")
    target.add_argument("--cell-id", type=int, help="Single cell to discover")

    parser.add_argument("--limit", type=int, default=100, help="Max cells per run (default: 100)")
    parser.add_argument("--concurrency", type=int, help="Cells searched in parallel (default: DISCOVERY_CONCURRENCY or 3)")
    parser.add_argument("--include-searched", action="store_true", help="Also re-search cells already searched")
    parser.add_argument("--force", action="store_true", help="With --cell-id: re-search even if saturated")
    parser.add_argument("--no-notify", action="store_true", help="Don't post a Slack summary")

    args = parser.parse_args()

    # Configure logging
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    await init_db()
    try:
        if args.cell_id is not None:
            await discover_single_cell_workflow(args.cell_id, force=args.force)
        else:
            await discover_grid_workflow(
                grid_id=args.grid_id,
                limit=args.limit,
                concurrency=args.concurrency,
                include_searched=args.include_searched,
                notify=not args.no_notify,
            )
    except DiscoveryError as e:
        logger.error(str(e))
        sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
