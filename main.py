import asyncio
import sys
from db.client import init_db, close_db


async def main(workflow_name: str):
    """Main entry point for running workflows with DB initialization."""
    await init_db()
    try:
        if workflow_name == "bootstrap_db":
            from workflows.bootstrap_db import bootstrap_db_workflow
            await bootstrap_db_workflow()
        elif workflow_name == "discover_cells":
            from services.discovery.service import Service
            from workflows.discover_cells import discover_grid_workflow
            grid, _ = await Service().get_or_create_global_grid()
            await discover_grid_workflow(grid.id)
        elif workflow_name == "generate_clusters":
            from workflows.generate_clusters import generate_clusters_workflow
            await generate_clusters_workflow()
        else:
            print(f"Unknown workflow: {workflow_name}")
            sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python main.py <workflow_name>")
        sys.exit(1)

    workflow_name = sys.argv[1]
    asyncio.run(main(workflow_name))
