"""
Discovery Service - Find leads by searching a grid of map cells.

Usage:
    from services.discovery.service import Service

    service = Service()
    grid_id, cells = await service.generate_grid("Niagara", "Niagara", "Ontario", bounds)
    result = await service.discover_cell(cell_id)
"""
