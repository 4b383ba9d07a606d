"""
Clustering Service - Group geo-located leads into named regions.

Usage:
    from services.clustering.service import Service

    service = Service()
    result = await service.generate_clusters(epsilon_km=15, min_points=3)
    cluster_id = await service.create_polygon_cluster("Niagara Bench", boundary)
"""
