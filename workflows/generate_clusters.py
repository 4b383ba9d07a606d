#!/usr/bin/env python3
"""
Lead clustering workflow.

Run DBSCAN over every geo-located lead and store one cluster per dense
group. By default previous auto-generated clusters are replaced; manual
(polygon) clusters are never touched.

Usage:
    # Regenerate clusters with the default parameters (15km, 3 points)
    uv run python -m workflows.generate_clusters

    # Preview without writing
    uv run python -m workflows.generate_clusters --dry-run

    # Tighter clusters, keep the existing ones
    uv run python -m workflows.generate_clusters --epsilon-km 8 --min-points 5 --keep-existing
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
from services.clustering.service import ClusteringResult, Service
from services.discovery.errors import DiscoveryError


async def generate_clusters_workflow(
    epsilon_km: Optional[float] = None,
    min_points: Optional[int] = None,
    keep_existing: bool = False,
    dry_run: bool = False,
    notify: bool = True,
    service: Optional[Service] = None,
) -> ClusteringResult:
    """Cluster leads and log a per-cluster summary."""
    service = service or Service()
    result = await service.generate_clusters(
        epsilon_km=epsilon_km,
        min_points=min_points,
        replace_existing=not keep_existing,
        dry_run=dry_run,
    )

    logger.info("")
    logger.info("=" * 70)
    logger.info("Clusters (dry run)" if dry_run else "Clusters")
    logger.info("=" * 70)
    for draft in sorted(result.drafts, key=lambda d: d.lead_count, reverse=True):
        logger.info(
            f"  {draft.name:<30} {draft.lead_count:>5} leads  "
            f"r={draft.radius_km:.1f}km  ({draft.center_lat:.4f}, {draft.center_lng:.4f})"
        )
    logger.info(f"Leads clustered: {result.leads_clustered}/{result.leads_considered}")

    if dry_run:
        return result

    logger.success(f"Stored {len(result.cluster_ids)} clusters, removed {result.clusters_removed}")
    if notify:
        slack.send_cluster_summary(
            cluster_count=len(result.cluster_ids),
            leads_clustered=result.leads_clustered,
            leads_considered=result.leads_considered,
            clusters_removed=result.clusters_removed,
        )
    return result


async def main():
    parser = argparse.ArgumentParser(
        description="Group geo-located leads into clusters with DBSCAN",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--epsilon-km", type=float, help="Neighbourhood radius in km (default: CLUSTER_EPSILON_KM or 15)")
    parser.add_argument("--min-points", type=int, help="Min leads for a dense group (default: CLUSTER_MIN_POINTS or 3)")
    parser.add_argument("--keep-existing", action="store_true", help="Don't delete previous auto-generated clusters")
    parser.add_argument("--dry-run", action="store_true", help="Compute clusters but don't store them")
    parser.add_argument("--no-notify", action="store_true", help="Don't post a Slack summary")

    args = parser.parse_args()

    # Configure logging
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    await init_db()
    try:
        await generate_clusters_workflow(
            epsilon_km=args.epsilon_km,
            min_points=args.min_points,
            keep_existing=args.keep_existing,
            dry_run=args.dry_run,
            notify=not args.no_notify,
        )
    except DiscoveryError as e:
        logger.error(str(e))
        sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
