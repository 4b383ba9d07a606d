#!/usr/bin/env python3
"""
Grid generation workflow.

Tile a bounding box into fixed-size cells and store them as a new discovery
grid. Every cell starts unsearched; run workflows.discover_cells afterwards.

Usage:
    # Estimate how many cells a box needs (no DB writes)
    uv run python -m workflows.generate_grid --estimate --bbox 42.85,-80.10,43.35,-79.00

    # Create a grid with the default queries
    uv run python -m workflows.generate_grid --bbox 42.85,-80.10,43.35,-79.00 --name "Niagara"

    # Custom cell size and queries
    uv run python -m workflows.generate_grid --bbox 42.85,-80.10,43.35,-79.00 --name "Niagara" \\
        --cell-size 5 --query "farm market" --query "pick your own"
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional, Tuple

from loguru import logger

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.client import init_db, close_db
from services.discovery.constants import DEFAULT_PROVINCE, DEFAULT_QUERIES, DEFAULT_REGION
from services.discovery.errors import DiscoveryError
from services.discovery.grid_tiler import Bounds
from services.discovery.service import Service


def parse_bbox(bbox_str: str) -> Bounds:
    """Parse bbox string 'lat_min,lng_min,lat_max,lng_max' into Bounds."""
    parts = [float(x.strip()) for x in bbox_str.split(",")]
    if len(parts) != 4:
        raise ValueError("bbox must be 'lat_min,lng_min,lat_max,lng_max'")
    lat_min, lng_min, lat_max, lng_max = parts
    return Bounds(sw_lat=lat_min, sw_lng=lng_min, ne_lat=lat_max, ne_lng=lng_max)


async def generate_grid_workflow(
    bounds: Bounds,
    name: str,
    region: str = DEFAULT_REGION,
    province: str = DEFAULT_PROVINCE,
    cell_size: Optional[float] = None,
    queries: Optional[List[str]] = None,
    service: Optional[Service] = None,
) -> Tuple[int, int]:
    """Create the grid and its depth-0 cells. Returns (grid_id, cells_created)."""
    service = service or Service()

    logger.info("=" * 70)
    logger.info(f"Generating grid: {name}")
    logger.info("=" * 70)
    logger.info(f"Bounds: ({bounds.sw_lat}, {bounds.sw_lng}) to ({bounds.ne_lat}, {bounds.ne_lng})")
    logger.info(f"Region: {region}, {province}")
    logger.info(f"Queries: {', '.join(queries or DEFAULT_QUERIES)}")

    grid_id, created = await service.generate_grid(
        name=name,
        region=region,
        province=province,
        bounds=bounds,
        queries=queries,
        cell_size_km=cell_size,
    )

    logger.success(f"Grid {grid_id} created with {created} cells")
    return grid_id, created


async def main():
    parser = argparse.ArgumentParser(
        description="Generate a discovery grid over a bounding box",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--bbox", type=str, required=True, help="Bounding box: lat_min,lng_min,lat_max,lng_max")
    parser.add_argument("--name", type=str, help="Grid name (required unless --estimate)")
    parser.add_argument("--region", type=str, default=DEFAULT_REGION, help=f"Region label (default: {DEFAULT_REGION})")
    parser.add_argument("--province", type=str, default=DEFAULT_PROVINCE, help=f"Province label (default: {DEFAULT_PROVINCE})")
    parser.add_argument("--cell-size", type=float, help="Cell size in km (default: DISCOVERY_CELL_SIZE_KM or 10)")
    parser.add_argument("--query", action="append", dest="queries", help="Search query (repeatable)")
    parser.add_argument("--estimate", action="store_true", help="Only count the cells, don't create anything")

    args = parser.parse_args()

    # Configure logging
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    try:
        bounds = parse_bbox(args.bbox)
    except ValueError as e:
        logger.error(f"Invalid bbox format: {e}")
        sys.exit(1)

    service = Service()

    if args.estimate:
        try:
            cells = service.estimate_grid(bounds, args.cell_size)
        except DiscoveryError as e:
            logger.error(str(e))
            sys.exit(1)
        size = args.cell_size or service.config.default_cell_size_km
        logger.info(f"Cells at {size}km: {cells:,} (max {service.config.max_cells:,})")
        return

    if not args.name:
        parser.error("--name is required to create a grid")

    await init_db()
    try:
        await generate_grid_workflow(
            bounds=bounds,
            name=args.name,
            region=args.region,
            province=args.province,
            cell_size=args.cell_size,
            queries=args.queries,
            service=service,
        )
    except DiscoveryError as e:
        logger.error(str(e))
        sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
